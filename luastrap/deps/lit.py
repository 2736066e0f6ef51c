"""
Lit Package Installer

Formats lit dependencies into `author/name[@version]` arguments and runs a
single `lit install` for all of them.
"""

import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, List, Optional, Tuple, Union

import structlog

from ..config import LitDependency
from ..errors import DependencyIOError


@dataclass(frozen=True)
class ExecResult:
    """Result envelope for subprocess execution."""

    argv: Tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_install_args(deps: Mapping[str, LitDependency]) -> List[str]:
    """
    Format dependencies as lit install arguments, sorted by package name.

    `latest` or no version installs `author/name`; anything else pins
    `author/name@version`. Each argument keeps a trailing space.
    """
    args = []
    for name in sorted(deps):
        details = deps[name]
        if details.is_latest:
            args.append(f"{details.author}/{name} ")
        else:
            args.append(f"{details.author}/{name}@{details.version} ")
    return args


class LitInstaller:
    """Installs lit dependencies with one `lit install` invocation."""

    def __init__(self, executable: str = "lit"):
        self.executable = executable
        self.logger = structlog.get_logger(__name__)

    def install(self, deps: Mapping[str, LitDependency],
                cwd: Optional[Union[str, Path]] = None) -> ExecResult:
        """
        Run `lit install` for every dependency.

        Returns:
            ExecResult; a non-zero return code is reported, not raised

        Raises:
            DependencyIOError: If lit cannot be launched
        """
        argv = [self.executable, "install", *format_install_args(deps)]
        self.logger.debug("Executing lit", command=" ".join(argv))

        try:
            completed = subprocess.run(argv, cwd=cwd, capture_output=True,
                                       text=True, errors="replace", check=False)
        except OSError as e:
            raise DependencyIOError(f"Failed to install dependencies via lit. {e}",
                                    dependency="lit") from e

        return ExecResult(
            argv=tuple(argv),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
