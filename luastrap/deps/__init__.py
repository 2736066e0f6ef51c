"""
Dependencies Package

Makes sure the binaries, git checkouts and lit packages a project needs are
in place.
"""

from .path import is_in_path
from .git import GitInstaller
from .lit import LitInstaller, format_install_args
from .progress import ProgressBoard, ProgressEvent, ProgressPhase, RichProgressBoard

__all__ = [
    "is_in_path",
    "GitInstaller",
    "LitInstaller",
    "format_install_args",
    "ProgressBoard",
    "ProgressEvent",
    "ProgressPhase",
    "RichProgressBoard",
]
