from __future__ import annotations

import os
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path


def now_ms() -> int:
    return int(time.time() * 1000)


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def env_flag(name: str) -> bool:
    raw = os.environ.get(name, "").strip().lower()
    return raw in {"1", "true", "yes", "on"}


def env_int(name: str, default: int | None = None) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def format_duration(ms: int) -> str:
    """Render a millisecond duration as ``5s``, ``1m 30s`` or ``1h 1m``."""
    seconds = max(0, int(ms)) // 1000
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def average_ms(durations: Sequence[int]) -> int | None:
    if not durations:
        return None
    return int(sum(durations) / len(durations))


def calculate_eta(iteration_times: Sequence[int], remaining_tasks: int) -> int | None:
    """Estimate remaining time as the mean iteration time times tasks left."""
    if remaining_tasks <= 0:
        return None
    avg = average_ms(iteration_times)
    if avg is None:
        return None
    return avg * remaining_tasks


def format_eta(eta_ms: int | None) -> str:
    if eta_ms is None:
        return "--"
    return f"~{format_duration(eta_ms)} remaining"


class CommandError(RuntimeError):
    def __init__(self, argv: list[str], returncode: int, stdout: str, stderr: str):
        super().__init__(f"command failed: {argv} (exit {returncode})")
        self.argv = argv
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def run_capture(argv: list[str], *, cwd: Path | None = None, env: dict[str, str] | None = None) -> str:
    proc = subprocess.run(
        argv,
        cwd=str(cwd) if cwd else None,
        env=env,
        text=True,
        capture_output=True,
        check=False,
    )
    if proc.returncode != 0:
        raise CommandError(argv, proc.returncode, proc.stdout, proc.stderr)
    return proc.stdout
