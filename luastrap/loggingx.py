"""
Structured Logging Setup

Configures structured logging with proper formatting and output handling.
"""

import os
import sys
import logging
import structlog
import click
from typing import Any, Mapping, Optional
from pathlib import Path

DEBUG_ENV_VAR = "DEBUG"

_LEVEL_STYLES = {
    "critical": ("bright_red", "ERROR: "),
    "error": ("bright_red", "ERROR: "),
    "warning": ("yellow", "WARNING: "),
    "info": ("green", ""),
    "debug": ("bright_cyan", "DEBUG: "),
}


def debug_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Verbose logging is on unless DEBUG is unset or "0"."""
    env = os.environ if environ is None else environ
    return env.get(DEBUG_ENV_VAR, "0") != "0"


class ArrowRenderer:
    """Render events as `==> LEVEL: message key=value ...`."""

    def __init__(self, colors: bool = True):
        self.colors = colors

    def __call__(self, logger: Any, method_name: str, event_dict: dict) -> str:
        level = event_dict.pop("level", method_name)
        event = event_dict.pop("event", "")
        timestamp = event_dict.pop("timestamp", None)
        logger_name = event_dict.pop("logger", None)
        exc = event_dict.pop("exception", None)

        color, prefix = _LEVEL_STYLES.get(level, ("white", f"{level.upper()}: "))
        head = f"==> {prefix}"
        if self.colors:
            head = click.style(head, fg=color)

        parts = [f"{head}{event}"]
        if event_dict:
            parts.append(" ".join(f"{k}={v}" for k, v in event_dict.items()))
        line = " ".join(parts)

        if timestamp or logger_name:
            meta = " ".join(str(p) for p in (timestamp, logger_name) if p)
            line = f"{meta} {line}"
        if exc:
            line = f"{line}\n{exc}"
        return line


def setup_logging(verbose: Optional[bool] = None,
                  log_file: Optional[str] = None) -> None:
    """
    Setup structured logging for luastrap.

    Args:
        verbose: Enable debug output with timestamps. Defaults to the DEBUG
            environment variable.
        log_file: Optional file path for logging output
    """
    if verbose is None:
        verbose = debug_enabled()
    level = logging.DEBUG if verbose else logging.INFO

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    # Configure structlog
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
    ]

    if verbose:
        processors.extend([
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
        ])

    processors.extend([
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        ArrowRenderer(colors=sys.stdout.isatty()),
    ])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Setup file logging if specified
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

        # Add file handler to root logger
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structured logger
    """
    return structlog.get_logger(name)


def log_task_start(task_name: Optional[str], runtime: str,
                   logger: Optional[structlog.BoundLogger] = None) -> None:
    """
    Log task execution start.

    Args:
        task_name: Name of the task
        runtime: Runtime the task is dispatched to
        logger: Optional logger instance
    """
    if logger is None:
        logger = get_logger(__name__)

    logger.debug("Task execution started",
                 task_name=task_name,
                 runtime=runtime)


def log_task_completion(task_name: Optional[str], duration: float, status: str,
                        logger: Optional[structlog.BoundLogger] = None) -> None:
    """
    Log task execution completion.

    Args:
        task_name: Name of the task
        duration: Execution duration in seconds
        status: Task status (completed, failed, etc.)
        logger: Optional logger instance
    """
    if logger is None:
        logger = get_logger(__name__)

    logger.debug("Task execution completed",
                 task_name=task_name,
                 duration=round(duration, 3),
                 status=status)
