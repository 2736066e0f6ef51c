"""
Configuration Model

Typed, immutable representation of a luastrap project file: package
metadata, dependency declarations and named tasks.
"""

import os
import re
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Any, Mapping, Optional, Tuple

import yaml

from .errors import ConfigParseError, ConfigurationError, MissingMainTaskError

MAIN_TASK = "main"
DEFAULT_CONFIG_FILE = "strap.toml"


class Runtime(Enum):
    """Runtime a task is dispatched to."""

    SHELL = "Shell"
    LUA = "Lua"

    @classmethod
    def parse(cls, value: str) -> "Runtime":
        for runtime in cls:
            if runtime.value == value:
                return runtime
        valid = ", ".join(r.value for r in cls)
        raise ConfigurationError(f"Unknown runtime {value!r}, expected one of: {valid}",
                                 config_path="tasks.runtime")


@dataclass(frozen=True)
class Package:
    name: str
    version: str
    description: Optional[str] = None
    authors: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class Task:
    """A named unit of work. At least one script source must resolve when it runs."""

    runtime: Runtime
    file: Optional[str] = None
    script: Optional[str] = None
    script_windows: Optional[str] = None
    script_linux: Optional[str] = None
    script_darwin: Optional[str] = None

    def script_for(self, platform: str) -> Optional[str]:
        """Inline override for `platform` ("windows", "linux" or "darwin")."""
        return {
            "windows": self.script_windows,
            "linux": self.script_linux,
            "darwin": self.script_darwin,
        }.get(platform)


@dataclass(frozen=True)
class GitDependency:
    location: str
    source: str
    path: Optional[str] = None

    @property
    def target(self) -> str:
        return self.path if self.path else self.location


@dataclass(frozen=True)
class LitDependency:
    LATEST = "latest"

    name: str
    author: str
    version: Optional[str] = None

    @property
    def is_latest(self) -> bool:
        return self.version is None or self.version == self.LATEST


@dataclass(frozen=True)
class Dependencies:
    bin: Tuple[str, ...] = ()
    git: Mapping[str, GitDependency] = field(default_factory=dict)
    lit: Mapping[str, LitDependency] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.bin or self.git or self.lit)


@dataclass(frozen=True)
class Config:
    """A validated project configuration. Always contains a `main` task."""

    package: Package
    tasks: Mapping[str, Task]
    dependencies: Dependencies = field(default_factory=Dependencies)
    source: Optional[str] = None

    def __post_init__(self):
        if MAIN_TASK not in self.tasks:
            raise MissingMainTaskError(config_file=self.source)
        object.__setattr__(self, 'tasks', MappingProxyType(dict(self.tasks)))

    @property
    def main(self) -> Task:
        return self.tasks[MAIN_TASK]

    def uses(self, runtime: Runtime) -> bool:
        """Check whether any task is going to use `runtime`."""
        return any(task.runtime is runtime for task in self.tasks.values())

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> "Config":
        """
        Build a config from a deserialized document.

        Args:
            data: Parsed document (TOML table or YAML mapping)
            source: Name of the file the document came from, for error context

        Returns:
            Validated Config

        Raises:
            ConfigurationError: If the document does not describe a valid config
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a table", config_file=source)

        package = _parse_package(_require_table(data, 'package', source), source)
        dependencies = _parse_dependencies(data.get('dependencies') or {}, source)

        tasks_data = _require_table(data, 'tasks', source)
        tasks = {name: _parse_task(name, raw, source) for name, raw in tasks_data.items()}

        return cls(package=package, tasks=tasks, dependencies=dependencies, source=source)


def _require_table(data: Dict[str, Any], key: str, source: Optional[str]) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        if key == 'tasks':
            raise MissingMainTaskError(config_file=source)
        raise ConfigurationError(f"Missing required table '{key}'",
                                 config_file=source, config_path=key)
    if not isinstance(value, dict):
        raise ConfigurationError(f"'{key}' must be a table",
                                 config_file=source, config_path=key)
    return value


def _require_str(data: Dict[str, Any], key: str, path: str, source: Optional[str]) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"Missing required string '{key}'",
                                 config_file=source, config_path=f"{path}.{key}")
    return value


def _optional_str(data: Dict[str, Any], key: str, path: str, source: Optional[str]) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ConfigurationError(f"'{key}' must be a string",
                                 config_file=source, config_path=f"{path}.{key}")
    return str(value)


def _parse_package(data: Dict[str, Any], source: Optional[str]) -> Package:
    authors = data.get('authors')
    if authors is not None:
        if not isinstance(authors, list):
            raise ConfigurationError("'authors' must be a list",
                                     config_file=source, config_path="package.authors")
        authors = tuple(str(a) for a in authors)

    # YAML reads `version: 1.0` as a float
    version = _optional_str(data, 'version', 'package', source)
    if not version:
        raise ConfigurationError("Missing required string 'version'",
                                 config_file=source, config_path="package.version")

    return Package(
        name=_require_str(data, 'name', 'package', source),
        version=version,
        description=_optional_str(data, 'description', 'package', source),
        authors=authors,
    )


def _parse_task(name: str, data: Any, source: Optional[str]) -> Task:
    path = f"tasks.{name}"
    if not isinstance(data, dict):
        raise ConfigurationError(f"Task '{name}' must be a table",
                                 config_file=source, config_path=path)

    runtime = data.get('runtime')
    if runtime is None:
        raise ConfigurationError(f"Task '{name}' is missing a runtime",
                                 config_file=source, config_path=f"{path}.runtime")
    try:
        parsed_runtime = Runtime.parse(str(runtime))
    except ConfigurationError as e:
        raise ConfigurationError(e.message, config_file=source, config_path=f"{path}.runtime") from e

    return Task(
        runtime=parsed_runtime,
        file=_optional_str(data, 'file', path, source),
        script=_optional_str(data, 'script', path, source),
        script_windows=_optional_str(data, 'script_windows', path, source),
        script_linux=_optional_str(data, 'script_linux', path, source),
        script_darwin=_optional_str(data, 'script_darwin', path, source),
    )


def _parse_dependencies(data: Any, source: Optional[str]) -> Dependencies:
    if not isinstance(data, dict):
        raise ConfigurationError("'dependencies' must be a table",
                                 config_file=source, config_path="dependencies")
    data = _substitute_env_vars_in_config(data)

    bins = data.get('bin') or []
    if not isinstance(bins, list):
        raise ConfigurationError("'bin' must be a list",
                                 config_file=source, config_path="dependencies.bin")

    git = {}
    for location, raw in (data.get('git') or {}).items():
        path = f"dependencies.git.{location}"
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Git dependency '{location}' must be a table",
                                     config_file=source, config_path=path)
        git[location] = GitDependency(
            location=location,
            source=_require_str(raw, 'source', path, source),
            path=_optional_str(raw, 'path', path, source),
        )

    lit = {}
    for name, raw in (data.get('lit') or {}).items():
        path = f"dependencies.lit.{name}"
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Lit dependency '{name}' must be a table",
                                     config_file=source, config_path=path)
        lit[name] = LitDependency(
            name=name,
            author=_require_str(raw, 'author', path, source),
            version=_optional_str(raw, 'version', path, source),
        )

    return Dependencies(bin=tuple(str(b) for b in bins), git=git, lit=lit)


def _substitute_environment_variables(value: str) -> str:
    """
    Substitute environment variables in a string value.

    Args:
        value: String that may contain ${VAR_NAME} placeholders

    Returns:
        String with environment variables substituted
    """
    if not isinstance(value, str):
        return value

    def replace_var(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return re.sub(r'\$\{([^}]+)\}', replace_var, value)


def _substitute_env_vars_in_config(config: Any) -> Any:
    """Recursively substitute environment variables in configuration values."""
    if isinstance(config, dict):
        return {k: _substitute_env_vars_in_config(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars_in_config(item) for item in config]
    elif isinstance(config, str):
        return _substitute_environment_variables(config)
    else:
        return config


def parse_config(contents: str, fmt: str = "toml", source: Optional[str] = None) -> Config:
    """
    Deserialize and validate configuration text.

    Args:
        contents: Document text
        fmt: "toml" or "yaml"
        source: File name used in error context

    Raises:
        ConfigParseError: If the text is not a valid document
        ConfigurationError: If the document is not a valid config
    """
    try:
        if fmt == "toml":
            data = tomllib.loads(contents)
        else:
            data = yaml.safe_load(contents)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"Invalid configuration: {e}", config_file=source) from e

    return Config.from_dict(data if data is not None else {}, source=source)


def load_config(path) -> Config:
    """Load a config file, choosing the deserializer by file extension."""
    config_path = Path(path)
    try:
        contents = config_path.read_bytes().decode("utf-8", errors="replace")
    except OSError as e:
        raise ConfigurationError(f"Could not read configuration: {e}",
                                 config_file=str(config_path)) from e

    fmt = "yaml" if config_path.suffix.lower() in (".yaml", ".yml") else "toml"
    return parse_config(contents, fmt=fmt, source=str(config_path))
