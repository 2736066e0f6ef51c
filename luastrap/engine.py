"""
Engine

Provisions a project's dependencies and runs its tasks.
"""
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import IO, List, Mapping, Optional, Union

import structlog

from .config import MAIN_TASK, Config, GitDependency
from .deps.git import GitInstaller
from .deps.lit import LitInstaller
from .deps.path import is_in_path
from .deps.progress import ProgressBoard
from .errors import (
    AutomationError,
    DependencyInstallError,
    GitError,
    MissingBinaryError,
    TaskExecutionError,
    format_error_context,
)
from .tasks.runner import Session
from .tasks.shell import ShellResult

logger = structlog.get_logger(__name__)


class Engine:
    """Dependency provisioning and task execution for one config."""

    def __init__(self, config: Config,
                 base_dir: Optional[Union[str, Path]] = None,
                 board: Optional[ProgressBoard] = None,
                 jobs: int = 1,
                 git: Optional[GitInstaller] = None,
                 lit: Optional[LitInstaller] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 output: Optional[IO[str]] = None):
        self.config = config
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.board = board or ProgressBoard()
        self.jobs = max(1, jobs)
        self.git = git or GitInstaller(environ=environ)
        self.lit = lit or LitInstaller()
        self.environ = environ
        self.output = output
        self.session: Optional[Session] = None

    def _require(self, binary: str) -> None:
        if not is_in_path(binary, self.environ):
            logger.error(f"Missing {binary}")
            raise MissingBinaryError(binary)

    def check_binaries(self) -> None:
        """
        Check every `bin` dependency is on PATH.

        Raises:
            MissingBinaryError: On the first binary that is missing
        """
        binaries = self.config.dependencies.bin
        if not binaries:
            return

        logger.info("Checking bin for dependencies")
        for binary in binaries:
            self._require(binary)
            logger.info(f"{binary} located")

    def _install_git_dependency(self, dependency: GitDependency) -> None:
        location = dependency.location
        sink = self.board.track(location)

        try:
            self.git.install(dependency, sink=sink, base_dir=self.base_dir)
        except GitError as e:
            if e.already_exists:
                self.board.finish(location, f"Already installed {location}")
                return
            self._fail_dependency(location, e)
        except AutomationError as e:
            self._fail_dependency(location, e)

        self.board.finish(location, f"Installed {location}")

    def _fail_dependency(self, location: str, error: AutomationError) -> None:
        self.board.finish(location, "Failed to install dependency", ok=False)
        raise DependencyInstallError(f"Failed to install {location}: {error.message}",
                                     dependency=location, cause=error) from error

    def _install_all(self, dependencies: List[GitDependency]) -> None:
        if self.jobs == 1:
            for dependency in dependencies:
                self._install_git_dependency(dependency)
            return

        # Install targets are disjoint, so clones can run side by side
        failure: Optional[DependencyInstallError] = None
        with ThreadPoolExecutor(max_workers=min(self.jobs, len(dependencies))) as executor:
            future_to_dependency = {
                executor.submit(self._install_git_dependency, dependency): dependency
                for dependency in dependencies
            }
            for future in as_completed(future_to_dependency):
                try:
                    future.result()
                except DependencyInstallError as e:
                    if failure is None:
                        failure = e

        if failure is not None:
            raise failure

    def install_git_dependencies(self) -> None:
        """
        Clone every git dependency. Dependencies that are already present count as installed.

        Progress is shown on the board while clones run; nothing else is logged
        until the board closes.

        Raises:
            MissingBinaryError: If git is not on PATH
            DependencyInstallError: If any dependency fails to install
        """
        dependencies = list(self.config.dependencies.git.values())
        if not dependencies:
            return

        logger.info("Installing dependencies via git")
        self._require(self.git.executable)

        try:
            with self.board:
                self._install_all(dependencies)
        except DependencyInstallError as e:
            logger.error("An unexpected error happened while installing dependencies",
                         dependency=e.context.get("dependency"), **format_error_context(e.cause))
            raise

    def install_lit_dependencies(self) -> bool:
        """
        Install lit dependencies with one `lit install`.

        Returns:
            False if lit exited non-zero, True otherwise

        Raises:
            MissingBinaryError: If lit is not on PATH
            DependencyIOError: If lit cannot be launched
        """
        dependencies = self.config.dependencies.lit
        if not dependencies:
            return True

        logger.info("Installing dependencies via lit")
        if not is_in_path(self.lit.executable, self.environ):
            logger.error("Lit is not installed and is required!")
            raise MissingBinaryError(self.lit.executable)

        result = self.lit.install(dependencies, cwd=self.base_dir)
        self._echo(result.stdout)

        if not result.ok:
            logger.error("Failed to install dependencies via lit, check logs above.",
                         return_code=result.returncode)
            if result.stderr.strip():
                logger.error(result.stderr.strip())
            return False
        return True

    def provision(self) -> None:
        """Check binaries, then install git and lit dependencies."""
        package = self.config.package
        logger.info(f"Setting up {package.name}@{package.version}")

        self.check_binaries()
        self.install_git_dependencies()
        self.install_lit_dependencies()

    def run_task(self, name: str = MAIN_TASK) -> Optional[ShellResult]:
        """
        Run a task in this engine's session.

        Raises:
            TaskExecutionError: If the task fails; it is logged before being raised
        """
        if self.session is None:
            self.session = Session(self.config.tasks, base_dir=self.base_dir, output=self.output)

        logger.info(f"Running `{name}` task")
        try:
            result = self.session.run(name)
        except TaskExecutionError as e:
            logger.error(f"Failed to run `{name}` task, {e.message}", **e.context)
            raise

        logger.info(f"Finished `{name}` task")
        return result

    def run(self, task: str = MAIN_TASK) -> Optional[ShellResult]:
        """Provision dependencies, then run `task`."""
        self.provision()
        return self.run_task(task)

    def _echo(self, text: str) -> None:
        if not text:
            return
        stream = self.output if self.output is not None else sys.stdout
        stream.write("\n" + text)
        if not text.endswith("\n"):
            stream.write("\n")
        stream.flush()
