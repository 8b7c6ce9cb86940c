from __future__ import annotations

from ralph.events import ToolEvent
from ralph.fmt import ConsoleObserver, _tool_style


def _tool(name: str, detail: str = "", *, ok: bool = True) -> ToolEvent:
    return ToolEvent(kind="tool", timestamp=0, name=name, detail=detail, ok=ok)


def test_iteration_header_and_tool_lines(console, stdout) -> None:
    observer = ConsoleObserver(console)

    observer.on_iteration_start(3)
    observer.on_event(_tool("read", "plan.md"))
    observer.on_event(_tool("bash", "pytest -q", ok=False))
    observer.on_event(_tool("glob"))

    lines = stdout.getvalue().splitlines()
    assert "▶ Iteration 3" in lines
    assert "  ✓ read plan.md" in lines
    assert "  ✗ bash pytest -q" in lines
    assert "  ✓ glob" in lines


def test_text_is_buffered_until_done(console, stdout) -> None:
    observer = ConsoleObserver(console)

    observer.on_event(ToolEvent(kind="text", timestamp=0, detail="Finished "))
    observer.on_event(ToolEvent(kind="text", timestamp=0, detail="task two."))
    assert stdout.getvalue() == ""

    observer.on_event(ToolEvent(kind="done", timestamp=0))
    assert "Finished task two." in stdout.getvalue()


def test_progress_line_includes_eta(console, stdout) -> None:
    observer = ConsoleObserver(console, iteration_times=[60000])

    observer.on_iteration_complete(2, 120000, 4)
    observer.on_tasks_updated(2, 5)

    out = stdout.getvalue()
    assert "iteration 2 finished in 2m 0s" in out
    assert "tasks 2/5  commits 4  ~4m 30s remaining" in out


def test_progress_without_history(console, stdout) -> None:
    observer = ConsoleObserver(console)

    observer.on_commits_updated(0)
    observer.on_tasks_updated(0, 3)

    assert "tasks 0/3  commits 0  --" in stdout.getvalue()


def test_lifecycle_lines(console, stdout) -> None:
    observer = ConsoleObserver(console)
    observer.on_tasks_updated(4, 4)
    observer.on_commits_updated(6)

    observer.on_pause()
    observer.on_resume()
    observer.on_complete()
    observer.on_error("opencode exited with status 1")

    out = stdout.getvalue()
    assert "⏸ paused" in out
    assert "▶ resumed" in out
    assert "✓ plan complete (4/4 tasks, 6 commits)" in out
    assert "✗ opencode exited with status 1" in out


def test_tool_style() -> None:
    assert _tool_style("edit", ok=True) == "magenta"
    assert _tool_style("read", ok=True) == "blue"
    assert _tool_style("webfetch", ok=True) == "dim"
    assert _tool_style("edit", ok=False) == "red"


def test_abort_flushes_text_and_reports_progress(console, stdout) -> None:
    observer = ConsoleObserver(console)
    observer.on_tasks_updated(1, 3)
    observer.on_commits_updated(2)
    observer.on_event(ToolEvent(kind="text", timestamp=0, detail="halfway there"))

    observer.on_abort()

    out = stdout.getvalue()
    assert "halfway there" in out
    assert "■ aborted (1/3 tasks, 2 commits)" in out
