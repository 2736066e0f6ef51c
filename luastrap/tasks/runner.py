"""
Task Runner

Resolves which script a task runs on the current platform and dispatches
it to the task's runtime.
"""

import sys
import time
from pathlib import Path
from typing import IO, Mapping, Optional, Union

import structlog

from ..config import MAIN_TASK, Runtime, Task
from ..errors import NoScriptSourceError, TaskIOError, TaskRuntimeError, UnknownTaskError
from ..loggingx import log_task_completion, log_task_start
from .embedded import EmbeddedInterpreter
from .shell import ShellExecutor, ShellOptions, ShellResult

_PLATFORMS = {
    "win32": "windows",
    "cygwin": "windows",
    "linux": "linux",
    "darwin": "darwin",
}


def current_platform() -> str:
    """Platform name used for task script overrides."""
    return _PLATFORMS.get(sys.platform, sys.platform)


def resolve_script(task: Task, platform: Optional[str] = None,
                   base_dir: Optional[Union[str, Path]] = None,
                   task_name: Optional[str] = None) -> str:
    """
    Pick the script a task runs. The first of these that is set wins:
    the override for `platform`, the inline `script`, the contents of `file`.

    Raises:
        NoScriptSourceError: If none of them is set
        TaskIOError: If `file` cannot be read
    """
    script = task.script_for(platform or current_platform())
    if script is None:
        script = task.script
    if script is not None:
        return script

    if task.file is None:
        raise NoScriptSourceError(task_name=task_name, task_type=task.runtime.value)

    path = Path(task.file)
    if base_dir is not None and not path.is_absolute():
        path = Path(base_dir) / path

    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise TaskIOError(f"Failed to read task file: {e}", task_name=task_name,
                          task_type=task.runtime.value, file=str(path)) from e


class Session:
    """
    Per-run context for executing tasks.

    The embedded interpreter and the shell options are created the first
    time a task runs and reused by every later task in the session.
    """

    def __init__(self, tasks: Mapping[str, Task],
                 base_dir: Optional[Union[str, Path]] = None,
                 output: Optional[IO[str]] = None,
                 executor: Optional[ShellExecutor] = None,
                 platform: Optional[str] = None):
        self.tasks = tasks
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self.output = output
        self.executor = executor or ShellExecutor()
        self.platform = platform or current_platform()
        self.interpreter: Optional[EmbeddedInterpreter] = None
        self.options: Optional[ShellOptions] = None
        self.logger = structlog.get_logger(__name__)

    def ensure_runtimes(self) -> None:
        if self.interpreter is None:
            self.interpreter = EmbeddedInterpreter()
        if self.options is None:
            self.options = ShellOptions(working_dir=self.base_dir)

    def run(self, name: str = MAIN_TASK) -> Optional[ShellResult]:
        """Run a task by name."""
        task = self.tasks.get(name)
        if task is None:
            raise UnknownTaskError(f"Unknown task: {name}", task_name=name)
        return self.run_task(task, name=name)

    def run_task(self, task: Task, name: Optional[str] = None) -> Optional[ShellResult]:
        """
        Run a single task.

        Returns:
            ShellResult for shell tasks, None for the embedded runtime

        Raises:
            TaskExecutionError: If the script cannot be resolved, launched or exits non-zero
        """
        self.ensure_runtimes()
        start_time = time.time()
        log_task_start(name, task.runtime.value, logger=self.logger)

        script = resolve_script(task, self.platform, self.base_dir, task_name=name)

        if task.runtime is Runtime.SHELL:
            result = self._run_shell(script, name)
        elif task.runtime is Runtime.LUA:
            self.interpreter.execute(script, task_name=name)
            result = None
        else:
            raise NotImplementedError(task.runtime)

        log_task_completion(name, time.time() - start_time, "completed", logger=self.logger)
        return result

    def _run_shell(self, script: str, name: Optional[str]) -> ShellResult:
        result = self.executor.run(script, [], self.options)
        self._echo(result.stdout)

        if result.code != 0:
            self.logger.error("Failed to complete task", task_name=name,
                              return_code=result.code, stderr=result.stderr)
            raise TaskRuntimeError(task_name=name, task_type=Runtime.SHELL.value,
                                   return_code=result.code, stderr=result.stderr)
        return result

    def _echo(self, text: str) -> None:
        if not text:
            return
        stream = self.output if self.output is not None else sys.stdout
        stream.write(text if text.endswith("\n") else text + "\n")
        stream.flush()
