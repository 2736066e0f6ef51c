"""
Shell Executor

Runs a task's script text with the system shell and returns its exit code
and output.
"""

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import structlog

from ..errors import ShellError


def default_runner() -> List[str]:
    if os.name == "nt":
        return ["cmd", "/C"]
    return ["/bin/sh", "-c"]


@dataclass
class ShellOptions:
    """Options shared by every shell task run in a session."""

    runner: List[str] = field(default_factory=default_runner)
    working_dir: Optional[Union[str, Path]] = None
    env_vars: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ShellResult:
    code: int
    stdout: str
    stderr: str


class ShellExecutor:
    """Executes scripts through the shell."""

    def __init__(self):
        self.logger = structlog.get_logger(__name__)

    def build_command(self, script: str, args: Sequence[str],
                      options: ShellOptions) -> List[str]:
        cmd = [*options.runner, script]
        if args:
            if os.name == "nt":
                cmd.extend(args)
            else:
                # first word after the script becomes $0
                cmd.extend([options.runner[0], *args])
        return cmd

    def run(self, script: str, args: Sequence[str] = (),
            options: Optional[ShellOptions] = None) -> ShellResult:
        """
        Execute a script.

        Args:
            script: Script text
            args: Positional arguments made available to the script
            options: Shell options (defaults to ShellOptions())

        Returns:
            ShellResult with the exit code and captured output

        Raises:
            ShellError: If the shell cannot be launched
        """
        options = options or ShellOptions()
        cmd = self.build_command(script, args, options)

        env = os.environ.copy()
        env.update(options.env_vars)

        self.logger.debug("Executing shell script",
                          runner=" ".join(options.runner),
                          working_dir=str(options.working_dir or os.getcwd()))

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                cwd=options.working_dir,
                env=env,
                check=False  # non-zero exit codes are reported by the caller
            )
        except OSError as e:
            raise ShellError(f"Failed to launch shell: {e}", runner=options.runner[0]) from e

        return ShellResult(code=result.returncode, stdout=result.stdout, stderr=result.stderr)
