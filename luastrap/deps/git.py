"""
Git Dependency Installer

Clones a git dependency into its target directory, streams clone progress
to a sink and strips the `.git` directory so the dependency is left as a
plain tree.
"""

import os
import re
import shutil
import subprocess
from pathlib import Path
from typing import IO, Iterator, Mapping, Optional, Union

import structlog

from ..config import GitDependency
from ..errors import DependencyIOError, GitError, GitErrorCode
from .progress import ProgressEvent, ProgressPhase, ProgressSink

_PHASES = {
    "Receiving objects": ProgressPhase.RECEIVING,
    "Resolving deltas": ProgressPhase.RESOLVING,
    "Updating files": ProgressPhase.CHECKOUT,
    "Checking out files": ProgressPhase.CHECKOUT,
}

_PROGRESS_RE = re.compile(
    r"^(?P<title>Receiving objects|Resolving deltas|Updating files|Checking out files):"
    r"\s+\d+%\s+\((?P<current>\d+)/(?P<total>\d+)\)"
)

_LINE_SPLIT_RE = re.compile(rb"[\r\n]")


def parse_progress_line(line: str, label: str) -> Optional[ProgressEvent]:
    """Turn one line of `git clone --progress` stderr into an event, if it is one."""
    match = _PROGRESS_RE.match(line.strip())
    if match is None:
        return None
    return ProgressEvent(
        phase=_PHASES[match.group('title')],
        current=int(match.group('current')),
        total=int(match.group('total')),
        label=label,
    )


def _iter_lines(stream: IO[bytes]) -> Iterator[str]:
    # git redraws progress with carriage returns, so split on both
    buffer = b""
    for chunk in iter(lambda: stream.read1(4096), b""):
        buffer += chunk
        *complete, buffer = _LINE_SPLIT_RE.split(buffer)
        for raw in complete:
            yield raw.decode("utf-8", errors="replace")
    if buffer:
        yield buffer.decode("utf-8", errors="replace")


def _occupied(target: Path) -> bool:
    if not target.exists():
        return False
    if not target.is_dir():
        return True
    return any(target.iterdir())


class GitInstaller:
    """Installs git dependencies with the `git` executable."""

    def __init__(self, executable: str = "git", environ: Optional[Mapping[str, str]] = None):
        self.executable = executable
        self.environ = environ
        self.logger = structlog.get_logger(__name__)

    def target_for(self, dependency: GitDependency,
                   base_dir: Optional[Union[str, Path]] = None) -> Path:
        target = Path(dependency.target)
        if base_dir is not None and not target.is_absolute():
            target = Path(base_dir) / target
        return target

    def install(self, dependency: GitDependency, sink: Optional[ProgressSink] = None,
                base_dir: Optional[Union[str, Path]] = None) -> Path:
        """
        Clone a dependency and strip its git metadata.

        Args:
            dependency: Dependency to install
            sink: Receives ProgressEvent values while cloning
            base_dir: Directory relative targets resolve against

        Returns:
            Path of the installed dependency

        Raises:
            GitError: If the target already exists (code EXISTS) or the clone fails
            DependencyIOError: If the target cannot be inspected, git cannot be
                launched or `.git` cannot be removed
        """
        target = self.target_for(dependency, base_dir)

        try:
            occupied = _occupied(target)
        except OSError as e:
            raise DependencyIOError(f"Failed to inspect install target: {e}",
                                    dependency=dependency.location, path=str(target)) from e

        if occupied:
            raise GitError(
                f"Destination path '{target}' already exists and is not an empty directory",
                code=GitErrorCode.EXISTS,
                dependency=dependency.location,
                path=str(target),
            )

        self.logger.debug("Cloning dependency", dependency=dependency.location,
                          source=dependency.source, target=str(target))
        self._clone(dependency, target, sink)
        self._strip_metadata(dependency, target)
        return target

    def _clone(self, dependency: GitDependency, target: Path,
               sink: Optional[ProgressSink]) -> None:
        cmd = [self.executable, "clone", "--progress", dependency.source, str(target)]

        env = dict(os.environ if self.environ is None else self.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"

        try:
            process = subprocess.Popen(cmd, stdin=subprocess.DEVNULL,
                                       stdout=subprocess.DEVNULL,
                                       stderr=subprocess.PIPE, env=env)
        except OSError as e:
            raise DependencyIOError(f"Failed to launch git: {e}",
                                    dependency=dependency.location) from e

        messages = []
        with process:
            for line in _iter_lines(process.stderr):
                event = parse_progress_line(line, dependency.location)
                if event is None:
                    if line.strip():
                        messages.append(line.strip())
                    continue
                if sink is not None:
                    sink(event)
            returncode = process.wait()

        if returncode != 0:
            detail = "\n".join(messages[-10:])
            raise GitError(
                f"git clone failed with exit code {returncode}: {detail}",
                code=GitErrorCode.CLONE_FAILED,
                dependency=dependency.location,
                detail=detail,
                source=dependency.source,
            )

    def _strip_metadata(self, dependency: GitDependency, target: Path) -> None:
        metadata = target / ".git"
        try:
            shutil.rmtree(metadata)
        except OSError as e:
            raise DependencyIOError(f"Failed to remove git metadata: {e}",
                                    dependency=dependency.location, path=str(metadata)) from e
