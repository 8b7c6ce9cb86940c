from __future__ import annotations

import io
from pathlib import Path
from typing import Callable

import pytest
from rich.console import Console


@pytest.fixture
def stdout() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(stdout: io.StringIO) -> Console:
    return Console(file=stdout, force_terminal=False, color_system=None, width=120)


@pytest.fixture
def write_plan(tmp_path: Path) -> Callable[..., Path]:
    def write(done: int = 0, todo: int = 0, *, name: str = "plan.md") -> Path:
        lines = ["# Plan", ""]
        lines += [f"- [x] done task {i}" for i in range(done)]
        lines += [f"- [ ] open task {i}" for i in range(todo)]
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return write
