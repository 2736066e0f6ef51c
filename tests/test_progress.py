"""Tests for progress events and the rich progress board."""

import io

from rich.console import Console

from luastrap.deps.progress import ProgressEvent, ProgressPhase, RichProgressBoard


def _board():
    output = io.StringIO()
    console = Console(file=output, force_terminal=True, width=120)
    return RichProgressBoard(console=console), output


def test_event_description():
    event = ProgressEvent(phase=ProgressPhase.RESOLVING, current=1, total=4, label="deps/lib")
    assert event.describe() == "Resolving deltas [deps/lib]"


def test_rich_board_tracks_each_dependency():
    board, _ = _board()

    with board:
        sink = board.track("deps/lib")
        sink(ProgressEvent(phase=ProgressPhase.RECEIVING, current=2, total=4, label="deps/lib"))
        board.track("deps/other")

    tasks = {task.description: task for task in board.progress.tasks}
    assert tasks["Receiving objects [deps/lib]"].completed == 2
    assert tasks["Receiving objects [deps/lib]"].total == 4
    assert "deps/other" in tasks


def test_rich_board_renders_finished_dependencies():
    board, output = _board()

    with board:
        sink = board.track("good")
        sink(ProgressEvent(phase=ProgressPhase.CHECKOUT, current=3, total=5, label="good"))
        board.finish("good", "Installed good")
        board.track("bad")
        board.finish("bad", "Failed to install dependency", ok=False)

    rendered = output.getvalue()
    assert "Installed good" in rendered
    assert "Failed to install dependency" in rendered

    tasks = {task.description: task for task in board.progress.tasks}
    assert tasks["Installed good"].completed == 5
    assert tasks["Installed good"].finished
    assert tasks["[red]Failed to install dependency[/red]"].completed == 0


def test_finish_without_progress_completes_the_bar():
    board, _ = _board()

    with board:
        board.finish("lib", "Already installed lib")

    (task,) = board.progress.tasks
    assert task.description == "Already installed lib"
    assert task.completed == task.total == 1
