"""
Custom Exceptions

Defines custom exceptions with context for luastrap.

Two families are kept apart on purpose: dependency provisioning errors and
task execution errors. Each error carries the process exit code the CLI
should use when it reaches the top level.
"""

from enum import Enum
from typing import Dict, Any, Optional


class AutomationError(Exception):
    """Base exception for luastrap errors."""

    exit_code: int = 1

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self):
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class ConfigurationError(AutomationError):
    """Exception raised when configuration is invalid."""

    def __init__(self, message: str, config_file: Optional[str] = None,
                 config_path: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if config_file:
            context['config_file'] = config_file
        if config_path:
            context['config_path'] = config_path

        super().__init__(message, context)


class ConfigParseError(ConfigurationError):
    """The configuration document could not be deserialized."""


class MissingMainTaskError(ConfigurationError):
    """The configuration has no `main` task."""

    def __init__(self, config_file: Optional[str] = None, **kwargs):
        super().__init__("Your config file is missing a main task!",
                         config_file=config_file, config_path="tasks.main", **kwargs)


class ResourceNotFoundError(AutomationError):
    """Exception raised when a required resource is not found."""

    def __init__(self, message: str, resource_type: Optional[str] = None,
                 resource_name: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if resource_type:
            context['resource_type'] = resource_type
        if resource_name:
            context['resource_name'] = resource_name

        super().__init__(message, context)


# Dependency provisioning

class DependencyError(AutomationError):
    """Base exception for dependency provisioning failures."""

    def __init__(self, message: str, dependency: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if dependency:
            context['dependency'] = dependency

        super().__init__(message, context)


class GitErrorCode(Enum):
    """Classification of git failures callers are allowed to branch on."""

    EXISTS = "exists"
    CLONE_FAILED = "clone_failed"


class GitError(DependencyError):
    """Exception raised when a git operation fails."""

    def __init__(self, message: str, code: GitErrorCode = GitErrorCode.CLONE_FAILED,
                 dependency: Optional[str] = None, detail: Optional[str] = None,
                 **kwargs):
        super().__init__(message, dependency=dependency, **kwargs)
        self.code = code
        self.detail = detail

    @property
    def already_exists(self) -> bool:
        return self.code is GitErrorCode.EXISTS


class DependencyIOError(DependencyError):
    """Filesystem or process-launch failure while provisioning a dependency."""

    def __init__(self, message: str, dependency: Optional[str] = None,
                 path: Optional[str] = None, **kwargs):
        if path:
            kwargs['path'] = path
        super().__init__(message, dependency=dependency, **kwargs)


class MissingBinaryError(DependencyError, ResourceNotFoundError):
    """A required executable could not be found on PATH."""

    exit_code = 127

    def __init__(self, binary: str, **kwargs):
        AutomationError.__init__(self, f"Missing {binary}",
                                 {'resource_type': 'binary', 'resource_name': binary, **kwargs})
        self.binary = binary


class DependencyInstallError(DependencyError):
    """A dependency could not be installed; fatal for the run."""

    def __init__(self, message: str, dependency: Optional[str] = None,
                 cause: Optional[Exception] = None, **kwargs):
        super().__init__(message, dependency=dependency, **kwargs)
        self.cause = cause


# Task execution

class TaskExecutionError(AutomationError):
    """Exception raised when a task fails to execute."""

    def __init__(self, message: str, task_name: Optional[str] = None,
                 task_type: Optional[str] = None, **kwargs):
        context = kwargs.copy()
        if task_name:
            context['task_name'] = task_name
        if task_type:
            context['task_type'] = task_type

        super().__init__(message, context)


class ShellError(TaskExecutionError):
    """The shell could not be launched for a task."""


class TaskIOError(TaskExecutionError):
    """A task's script file could not be read."""


class TaskRuntimeError(TaskExecutionError):
    """The task's script ran and exited non-zero."""

    def __init__(self, message: str = "The task failed at runtime",
                 return_code: Optional[int] = None, stderr: str = "", **kwargs):
        if return_code is not None:
            kwargs['return_code'] = return_code
        super().__init__(message, **kwargs)
        self.return_code = return_code
        self.stderr = stderr


class NoScriptSourceError(TaskExecutionError):
    """No platform script, inline script or file was configured for a task."""

    def __init__(self, message: str = "No file was found to run", **kwargs):
        super().__init__(message, **kwargs)


class UnknownTaskError(TaskExecutionError):
    """The requested task name is not defined in the configuration."""


def format_error_context(error: Exception) -> Dict[str, Any]:
    """
    Format error context for logging or reporting.

    Args:
        error: Exception instance

    Returns:
        Dictionary with error context information
    """
    if isinstance(error, AutomationError):
        return {
            'error_type': error.__class__.__name__,
            'message': error.message,
            'context': error.context
        }
    else:
        return {
            'error_type': error.__class__.__name__,
            'message': str(error),
            'context': {}
        }
