"""
Command-line interface for luastrap.
"""

import signal
import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from rich.console import Console

from . import __version__
from .config import DEFAULT_CONFIG_FILE, MAIN_TASK, Config, load_config
from .deps.lit import format_install_args
from .deps.progress import ProgressBoard, RichProgressBoard
from .engine import Engine
from .errors import (
    AutomationError,
    DependencyInstallError,
    MissingBinaryError,
    TaskExecutionError,
)
from .loggingx import debug_enabled, setup_logging

logger = structlog.get_logger(__name__)

# Errors the engine has already logged by the time they reach the CLI
_REPORTED_ERRORS = (MissingBinaryError, DependencyInstallError, TaskExecutionError)

INTERRUPT_EXIT_CODE = 130

config_argument = click.argument(
    'config_file', default=DEFAULT_CONFIG_FILE,
    type=click.Path(dir_okay=False, path_type=Path),
)
jobs_option = click.option(
    '-j', '--jobs', default=1, show_default=True, type=click.IntRange(min=1),
    envvar='LUASTRAP_JOBS', help='Number of git dependencies to install at once',
)


def _fail(ctx: click.Context, error: AutomationError) -> None:
    if not isinstance(error, _REPORTED_ERRORS):
        logger.error(str(error))
    ctx.exit(error.exit_code)


def _load(ctx: click.Context, config_file: Path) -> Config:
    try:
        return load_config(config_file)
    except AutomationError as e:
        _fail(ctx, e)


def _board() -> ProgressBoard:
    if sys.stdout.isatty():
        return RichProgressBoard(console=Console())
    return ProgressBoard()


def _engine(config: Config, config_file: Path, jobs: int) -> Engine:
    return Engine(config, base_dir=config_file.resolve().parent, board=_board(), jobs=jobs)


@click.group()
@click.version_option(version=__version__)
@click.option('-v', '--verbose', is_flag=True, help='Enable debug output (same as DEBUG=1)')
@click.option('--log-file', type=click.Path(dir_okay=False), help='Also write logs to this file')
def cli(verbose: bool, log_file: Optional[str]):
    """luastrap - install project dependencies and run project tasks."""
    setup_logging(verbose=verbose or debug_enabled(), log_file=log_file)


@cli.command()
@config_argument
@click.option('-t', '--task', 'task_name', default=MAIN_TASK, show_default=True,
              help='Task to run after provisioning')
@jobs_option
@click.option('--dry-run', is_flag=True, help='Show what would be executed without running')
@click.pass_context
def run(ctx: click.Context, config_file: Path, task_name: str, jobs: int, dry_run: bool):
    """Install dependencies, then run a task."""
    config = _load(ctx, config_file)

    if dry_run:
        _describe(config, task_name)
        return

    engine = _engine(config, config_file, jobs)
    try:
        engine.run(task_name)
    except AutomationError as e:
        _fail(ctx, e)


@cli.command()
@config_argument
@jobs_option
@click.pass_context
def install(ctx: click.Context, config_file: Path, jobs: int):
    """Install dependencies without running any task."""
    config = _load(ctx, config_file)

    engine = _engine(config, config_file, jobs)
    try:
        engine.provision()
    except AutomationError as e:
        _fail(ctx, e)


@cli.command('list-tasks')
@config_argument
@click.pass_context
def list_tasks(ctx: click.Context, config_file: Path):
    """List the tasks defined in a config file."""
    config = _load(ctx, config_file)

    click.echo("Available tasks:")
    for name, task in sorted(config.tasks.items()):
        click.echo(f"  {name} ({task.runtime.value}): {', '.join(_sources(task)) or 'no script'}")


def _sources(task) -> list:
    sources = [key for key in ('script_windows', 'script_linux', 'script_darwin', 'script')
               if getattr(task, key) is not None]
    if task.file is not None:
        sources.append(f"file={task.file}")
    return sources


def _describe(config: Config, task_name: str) -> None:
    deps = config.dependencies
    click.echo(f"Would set up {config.package.name}@{config.package.version}")
    if deps.bin:
        click.echo(f"Binaries: {', '.join(deps.bin)}")
    for _, dependency in sorted(deps.git.items()):
        click.echo(f"Git: {dependency.source} -> {dependency.target}")
    if deps.lit:
        click.echo(f"Lit: lit install {''.join(format_install_args(deps.lit)).strip()}")
    task = config.tasks.get(task_name)
    if task is None:
        click.echo(f"Task: {task_name} (not defined)")
    else:
        click.echo(f"Task: {task_name} ({task.runtime.value})")


def _handle_interrupt(signum, frame):
    logger.error("SIGINT received, exiting...")
    sys.exit(INTERRUPT_EXIT_CODE)


def main():
    signal.signal(signal.SIGINT, _handle_interrupt)
    cli()


if __name__ == '__main__':
    main()
