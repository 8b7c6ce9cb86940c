"""CLI entry point for ralph."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from types import FrameType
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .config import LoopOptions, load_file_config, resolve_options
from .control import CancelToken
from .errors import ConfigurationError, CorruptState, RalphError
from .fmt import ConsoleObserver
from .loop import LoopResult, run_loop
from .state import PersistedState, StateStore
from .ui import add_output_mode_argument, configure_logging, make_console, resolve_output_mode
from .util import env_flag, format_duration, now_ms

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_ABORTED = 130


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ralph",
        description="Run a coding agent against a plan file until every task is checked off.",
    )
    p.add_argument("--plan", default=None, help="Plan file (default: plan.md)")
    p.add_argument("--model", default=None, help="provider/model (default: anthropic/claude-opus-4)")
    prompt = p.add_mutually_exclusive_group()
    prompt.add_argument("--prompt", default=None, help="Prompt template; {plan} is replaced")
    prompt.add_argument("--prompt-file", default=None, help="Markdown prompt template")
    p.add_argument("--max-iterations", type=int, default=None, help="Stop after N iterations")
    p.add_argument("--reset", action="store_true", help="Discard saved state and start over")
    p.add_argument("--debug", action="store_true", help="Verbose logging")
    p.add_argument("--version", action="version", version=f"ralph {__version__}")
    add_output_mode_argument(p)
    return p


def _resume_banner(console: Console, state: PersistedState) -> None:
    elapsed = format_duration(now_ms() - state.start_time)
    count = len(state.iteration_times)
    console.print(
        Panel(
            f"Resuming [bold]{state.plan_file}[/bold]: {count} iteration(s), "
            f"started {elapsed} ago from {state.initial_commit_hash[:12]}",
            style="cyan",
            expand=False,
        )
    )


def _start_banner(console: Console, options: LoopOptions) -> None:
    console.print(
        Panel(
            f"[bold]{options.plan_file}[/bold] with {options.model}",
            title="ralph",
            style="green",
            expand=False,
        )
    )


class _SignalHandlers:
    """SIGINT aborts (a second one falls through), SIGUSR1 toggles pause."""

    def __init__(self, token: CancelToken, console: Console) -> None:
        self.token = token
        self.console = console
        self._previous: dict[int, Any] = {}

    def _on_interrupt(self, signum: int, frame: FrameType | None) -> None:
        signal.signal(signal.SIGINT, signal.default_int_handler)
        self.console.print(Text("Aborting...", style="yellow"))
        self.token.abort()

    def _on_toggle(self, signum: int, frame: FrameType | None) -> None:
        paused = self.token.toggle_pause()
        if paused:
            self.console.print(Text("Pause requested; pausing after this iteration", style="yellow"))

    def install(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        self._previous[signal.SIGINT] = signal.signal(signal.SIGINT, self._on_interrupt)
        sigusr1 = getattr(signal, "SIGUSR1", None)
        if sigusr1 is not None:
            self._previous[sigusr1] = signal.signal(sigusr1, self._on_toggle)

    def restore(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()


def _exit_code(result: LoopResult) -> int:
    if result.outcome == "aborted":
        return EXIT_ABORTED
    return EXIT_OK


def run(argv: list[str] | None = None, *, repo_root: Path | None = None) -> int:
    args = _parser().parse_args(argv)
    root = repo_root or Path.cwd()
    err = Console(stderr=True)

    try:
        file_cfg = load_file_config(root)
        mode = resolve_output_mode(args.output, configured=file_cfg.output)
    except (ConfigurationError, ValueError) as exc:
        err.print(Text(str(exc), style="red"))
        return EXIT_ERROR

    configure_logging(debug=args.debug or env_flag("RALPH_DEBUG"), mode=mode)
    console = make_console(mode)

    try:
        options = resolve_options(
            root,
            plan=args.plan,
            model=args.model,
            prompt=args.prompt,
            prompt_file=args.prompt_file,
            max_iterations=args.max_iterations,
        )
    except ConfigurationError as exc:
        err.print(Text(str(exc), style="red"))
        return EXIT_ERROR

    store = StateStore.from_workdir(root)
    if args.reset and store.clear():
        console.print(Text(f"Removed {store.path.name}", style="dim"))

    try:
        existing = store.load()
    except CorruptState as exc:
        err.print(Text(f"{exc} (rerun with --reset to start over)", style="red"))
        return EXIT_ERROR

    if existing is not None:
        _resume_banner(console, existing)
    else:
        _start_banner(console, options)

    token = CancelToken()
    observer = ConsoleObserver(
        console,
        iteration_times=existing.iteration_times if existing else None,
    )
    handlers = _SignalHandlers(token, console)
    handlers.install()
    try:
        result = run_loop(options, observer=observer, token=token)
    except RalphError:
        return EXIT_ERROR
    finally:
        handlers.restore()

    if result.outcome == "limit":
        console.print(
            Text(
                f"Stopped after {result.iterations} iteration(s); rerun to continue.",
                style="dim",
            )
        )
    elif result.outcome == "aborted":
        console.print(Text("Aborted. State saved; rerun to resume.", style="yellow"))
    return _exit_code(result)


def main(argv: list[str] | None = None) -> None:
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
