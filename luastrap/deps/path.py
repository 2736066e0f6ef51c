"""PATH lookups for required executables."""

import os
from pathlib import Path
from typing import Mapping, Optional


def path_separator() -> str:
    return ":" if os.name == "posix" else ";"


def is_in_path(name: str, environ: Optional[Mapping[str, str]] = None) -> bool:
    """
    Check if `name` is an executable file in one of the PATH directories.

    Args:
        name: Executable name, e.g. "git"
        environ: Environment to read PATH from (defaults to os.environ)

    Returns:
        True if some `<dir>/<name>` exists and is executable. False when PATH is unset.
    """
    env = os.environ if environ is None else environ
    search_path = env.get("PATH")
    if search_path is None:
        return False

    for directory in search_path.split(path_separator()):
        if not directory:
            continue
        candidate = Path(directory) / name
        if candidate.is_file() and os.access(candidate, os.X_OK):
            return True

    return False
