"""
Tasks Package

Runtimes that tasks are dispatched to, and the session that runs them.
"""

from .embedded import EmbeddedInterpreter
from .shell import ShellExecutor, ShellOptions, ShellResult
from .runner import Session, current_platform, resolve_script

__all__ = [
    "EmbeddedInterpreter",
    "ShellExecutor",
    "ShellOptions",
    "ShellResult",
    "Session",
    "current_platform",
    "resolve_script",
]
