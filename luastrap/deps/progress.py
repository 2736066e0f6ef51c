"""
Progress Events

Installers report clone progress as ProgressEvent values sent to a sink (any
callable taking one event). Boards turn those events into one progress
indicator per dependency.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import structlog
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


class ProgressPhase(Enum):
    RECEIVING = "receiving"
    RESOLVING = "resolving-deltas"
    CHECKOUT = "checkout"

    @property
    def title(self) -> str:
        return {
            ProgressPhase.RECEIVING: "Receiving objects",
            ProgressPhase.RESOLVING: "Resolving deltas",
            ProgressPhase.CHECKOUT: "Checking out files",
        }[self]


@dataclass(frozen=True)
class ProgressEvent:
    phase: ProgressPhase
    current: int
    total: int
    label: str

    def describe(self) -> str:
        return f"{self.phase.title} [{self.label}]"


ProgressSink = Callable[[ProgressEvent], None]


class ProgressBoard:
    """Progress board that renders nothing; events are logged at debug level."""

    def __init__(self):
        self.logger = structlog.get_logger(__name__)

    def __enter__(self) -> "ProgressBoard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        return None

    def track(self, location: str) -> ProgressSink:
        def sink(event: ProgressEvent) -> None:
            self.logger.debug("Clone progress", dependency=location,
                              phase=event.phase.value, current=event.current, total=event.total)
        return sink

    def finish(self, location: str, message: str, ok: bool = True) -> None:
        if ok:
            self.logger.info(message, dependency=location)
        else:
            self.logger.error(message, dependency=location)


class RichProgressBoard(ProgressBoard):
    """One rich progress bar per dependency being installed."""

    def __init__(self, console: Optional[Console] = None):
        super().__init__()
        self.progress = Progress(
            SpinnerColumn(style="white"),
            TimeElapsedColumn(),
            TextColumn("{task.description}"),
            BarColumn(complete_style="green"),
            MofNCompleteColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        self._tasks: Dict[str, TaskID] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "RichProgressBoard":
        self.progress.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.progress.stop()

    def _task_for(self, location: str) -> TaskID:
        with self._lock:
            if location not in self._tasks:
                self._tasks[location] = self.progress.add_task(location, total=1)
            return self._tasks[location]

    def track(self, location: str) -> ProgressSink:
        task_id = self._task_for(location)

        def sink(event: ProgressEvent) -> None:
            self.progress.update(task_id, description=event.describe(),
                                 total=event.total, completed=event.current)
        return sink

    def finish(self, location: str, message: str, ok: bool = True) -> None:
        task_id = self._task_for(location)
        if ok:
            task = next(t for t in self.progress.tasks if t.id == task_id)
            total = task.total or 1
            self.progress.update(task_id, description=message, completed=total)
        else:
            self.progress.update(task_id, description=f"[red]{message}[/red]")
        self.progress.stop_task(task_id)
