"""Output mode selection and console/logging setup for the CLI."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Literal

from rich.console import Console
from rich.logging import RichHandler

OUTPUT_CHOICES = ("auto", "plain", "rich")
OUTPUT_ENV_VAR = "RALPH_OUTPUT"
OutputMode = Literal["plain", "rich"]


def add_output_mode_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        choices=OUTPUT_CHOICES,
        metavar="MODE",
        help=f"auto (default), plain or rich; also read from {OUTPUT_ENV_VAR}",
    )


def _choice(raw: str | None, origin: str) -> str | None:
    cleaned = (raw or "").strip().lower()
    if not cleaned:
        return None
    if cleaned in OUTPUT_CHOICES:
        return cleaned
    raise ValueError(
        f"invalid {origin} value {raw!r}; expected one of: {', '.join(OUTPUT_CHOICES)}"
    )


def _isatty(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty()) if callable(isatty) else False
    except (OSError, ValueError):
        return False


def resolve_output_mode(
    requested: str | None = None,
    *,
    is_tty: bool | None = None,
    configured: str | None = None,
) -> OutputMode:
    """Pick plain or rich output.

    ``--output`` wins over ``RALPH_OUTPUT``, which wins over the ``output``
    key in ralph.toml. ``auto`` means rich on a terminal, plain otherwise.
    """
    candidates = (
        (requested, "--output"),
        (os.environ.get(OUTPUT_ENV_VAR), OUTPUT_ENV_VAR),
        (configured, "output"),
    )
    mode = "auto"
    for raw, origin in candidates:
        picked = _choice(raw, origin)
        if picked is not None:
            mode = picked
            break

    if mode != "auto":
        return "rich" if mode == "rich" else "plain"
    if is_tty is None:
        is_tty = _isatty(sys.stdout)
    return "rich" if is_tty else "plain"


def make_console(mode: OutputMode, *, stderr: bool = False) -> Console:
    rich_mode = mode == "rich"
    return Console(
        stderr=stderr,
        force_terminal=rich_mode,
        no_color=not rich_mode,
        highlight=False,
    )


def configure_logging(*, debug: bool, mode: OutputMode) -> None:
    handler = RichHandler(
        console=make_console(mode, stderr=True),
        show_path=debug,
        rich_tracebacks=debug,
    )
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
