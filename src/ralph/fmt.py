"""Compact console rendering of loop progress.

Design: one line per tool call, a header per iteration, and a progress line
after each iteration.
"""

from __future__ import annotations

import threading

from rich.console import Console
from rich.text import Text

from .events import LoopObserver, LoopStatus, ToolEvent
from .util import calculate_eta, format_duration, format_eta

# Category -> (tools, ok_style)
_TOOL_STYLES: dict[str, tuple[set[str], str]] = {
    "mutate": ({"edit", "write"}, "magenta"),
    "observe": ({"read", "glob", "grep"}, "blue"),
    "execute": ({"bash"}, "dim"),
    "delegate": ({"task"}, "cyan"),
}


def _tool_style(canonical_name: str, *, ok: bool) -> str:
    """Return Rich style string for a tool category."""
    if not ok:
        return "red"
    for _cat, (tools, style) in _TOOL_STYLES.items():
        if canonical_name in tools:
            return style
    return "dim"


def _is_interactive(console: Console) -> bool:
    return bool(console.is_terminal and not console.is_dumb_terminal)


class ConsoleObserver(LoopObserver):
    def __init__(
        self,
        console: Console | None = None,
        *,
        iteration_times: list[int] | None = None,
    ) -> None:
        self.console = console or Console()
        self.interactive = _is_interactive(self.console)
        self.iteration_times = list(iteration_times or [])
        self.done = 0
        self.total = 0
        self.commits = 0
        self._text_parts: list[str] = []
        self._lock = threading.Lock()

    def _line(self, text: str, style: str = "") -> None:
        with self._lock:
            if self.interactive and style:
                self.console.print(Text(text, style=style))
            else:
                self.console.print(text, markup=False, highlight=False)

    def _flush_text(self) -> None:
        text = "".join(self._text_parts).strip()
        self._text_parts = []
        if text:
            self._line("")
            self._line(text)

    def on_status(self, status: LoopStatus) -> None:
        if status == "ready":
            self._line("ready", "dim")

    def on_iteration_start(self, iteration: int) -> None:
        self._line("")
        self._line(f"▶ Iteration {iteration}", "bold green")

    def on_event(self, event: ToolEvent) -> None:
        if event.kind == "tool":
            prefix = "✓" if event.ok else "✗"
            line = f"  {prefix} {event.name}"
            if event.detail:
                line += f" {event.detail}"
            self._line(line, _tool_style(event.name, ok=event.ok))
        elif event.kind == "text":
            self._text_parts.append(event.detail)
        elif event.kind == "error":
            self._line(f"  error: {event.detail}", "red")
        elif event.kind == "done":
            self._flush_text()

    def on_iteration_complete(self, iteration: int, duration: int, commits: int) -> None:
        self.iteration_times.append(duration)
        self.commits = commits
        self._line(
            f"  iteration {iteration} finished in {format_duration(duration)}",
            "dim",
        )

    def on_tasks_updated(self, done: int, total: int) -> None:
        self.done = done
        self.total = total
        eta = calculate_eta(self.iteration_times, total - done)
        self._line(
            f"  tasks {done}/{total}  commits {self.commits}  {format_eta(eta)}",
            "cyan",
        )

    def on_commits_updated(self, commits: int) -> None:
        self.commits = commits

    def on_pause(self) -> None:
        self._line("⏸ paused", "yellow")

    def on_resume(self) -> None:
        self._line("▶ resumed", "yellow")

    def on_complete(self) -> None:
        self._line(f"✓ plan complete ({self.done}/{self.total} tasks, {self.commits} commits)", "bold green")

    def on_abort(self) -> None:
        self._flush_text()
        self._line(f"■ aborted ({self.done}/{self.total} tasks, {self.commits} commits)", "yellow")

    def on_error(self, error: str) -> None:
        self._line(f"✗ {error}", "bold red")
