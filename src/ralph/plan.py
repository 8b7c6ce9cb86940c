"""Plan file progress: count markdown checkbox tasks."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

DONE_RE = re.compile(r"- \[x\]", re.IGNORECASE)
TODO_RE = re.compile(r"- \[ \]")


@dataclass(frozen=True)
class PlanProgress:
    done: int
    total: int

    @property
    def remaining(self) -> int:
        return max(0, self.total - self.done)

    @property
    def is_complete(self) -> bool:
        return self.total > 0 and self.done == self.total


def count_tasks(text: str) -> PlanProgress:
    done = len(DONE_RE.findall(text))
    todo = len(TODO_RE.findall(text))
    return PlanProgress(done=done, total=done + todo)


def parse_plan(path: str | Path) -> PlanProgress:
    """Count ``- [x]`` (any case) and ``- [ ]`` markers in the plan file.

    A missing plan counts as no tasks.
    """
    p = Path(path)
    if not p.is_file():
        return PlanProgress(done=0, total=0)
    return count_tasks(p.read_text(encoding="utf-8", errors="replace"))
