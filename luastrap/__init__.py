"""
luastrap

Sets up a project from its config file: checks required binaries, installs
git and lit dependencies, then runs the project's tasks.
"""

__version__ = "0.1.0"

from .config import Config, load_config
from .engine import Engine

__all__ = ["Config", "Engine", "load_config"]
