"""Iteration loop and resumable-state controller."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal

from .backend import AgentSession, OpenCodeSession
from .config import LoopOptions
from .control import CancelToken
from .errors import RalphError
from .events import LoopObserver, LoopStatus, ObserverDispatcher, ToolEvent
from .git import Repository, RepositorySnapshot
from .plan import PlanProgress, parse_plan
from .prompt import DONE_MARKER, build_prompt
from .state import PersistedState, StateStore, initial_state
from .util import monotonic_ms, now_ms

LOGGER = logging.getLogger(__name__)

LoopOutcome = Literal["complete", "aborted", "limit"]
ClockFn = Callable[[], int]


@dataclass(frozen=True)
class LoopResult:
    outcome: LoopOutcome
    iterations: int
    commits: int
    progress: PlanProgress


class LoopController:
    """Run the agent once per iteration until the plan is done.

    ``starting -> ready -> running <-> paused -> complete``; any failure moves
    to ``error`` and the exception is re-raised after observers hear about
    it. Abort is signalled through the :class:`CancelToken`.
    """

    def __init__(
        self,
        options: LoopOptions,
        *,
        store: StateStore,
        repo: Repository,
        session: AgentSession,
        observer: LoopObserver | None = None,
        token: CancelToken | None = None,
        clock: ClockFn = monotonic_ms,
        wall_clock: ClockFn = now_ms,
    ) -> None:
        self.options = options
        self.store = store
        self.repo = repo
        self.session = session
        self.token = token or CancelToken()
        self.clock = clock
        self.wall_clock = wall_clock
        self.dispatcher = ObserverDispatcher(*([observer] if observer else []))
        self.state: PersistedState | None = None
        self.status: LoopStatus = "starting"
        self.commits = 0
        self.progress = PlanProgress(done=0, total=0)
        self.error: str | None = None

    @property
    def done_marker(self) -> Path:
        return self.options.repo_root / DONE_MARKER

    def pause(self) -> None:
        self.token.pause()

    def resume(self) -> None:
        self.token.resume()

    def abort(self) -> None:
        self.token.abort()

    def _set_status(self, status: LoopStatus) -> None:
        if status == self.status:
            return
        LOGGER.debug("status %s -> %s", self.status, status)
        self.status = status
        self.dispatcher.notify("on_status", status)

    def _forward(self, event: ToolEvent) -> None:
        self.dispatcher.notify("on_event", event)

    def _load_or_init_state(self) -> PersistedState:
        state = self.store.load()
        if state is not None:
            LOGGER.info(
                "resuming from %s: %d iteration(s) recorded since %s",
                self.store.path,
                len(state.iteration_times),
                state.initial_commit_hash[:12],
            )
            if state.plan_file != self.options.plan_file:
                LOGGER.warning(
                    "state was created for plan %s; continuing with %s",
                    state.plan_file,
                    self.options.plan_file,
                )
            return state
        state = initial_state(
            self.options.plan_file,
            self.repo.capture_reference(),
            now=self.wall_clock(),
        )
        self.store.save(state)
        return state

    def _clear_done_marker(self) -> None:
        if self.done_marker.exists():
            LOGGER.info("removing stale %s", DONE_MARKER)
            self.done_marker.unlink()

    def _report_progress(self, state: PersistedState) -> None:
        self.commits = self.repo.commits_since(state.initial_commit_hash)
        self.progress = parse_plan(self.options.plan_path)
        self.dispatcher.notify("on_commits_updated", self.commits)
        self.dispatcher.notify("on_tasks_updated", self.progress.done, self.progress.total)

    def _is_finished(self) -> bool:
        return self.progress.is_complete or self.done_marker.exists()

    def _checkpoint(self) -> bool:
        """Honor pause at an iteration boundary. False means abort."""
        if self.token.aborted:
            return False
        if not self.token.pause_requested:
            return True
        self._set_status("paused")
        self.dispatcher.notify("on_pause")
        if not self.token.wait_while_paused():
            return False
        self.dispatcher.notify("on_resume")
        return True

    def _run_iteration(self, state: PersistedState, model: str, prompt: str) -> bool:
        iteration = len(state.iteration_times) + 1
        started = self.clock()
        self._set_status("running")
        self.dispatcher.notify("on_iteration_start", iteration)

        completed = self.session.run(
            model=model,
            prompt=prompt,
            on_event=self._forward,
            token=self.token,
            iteration=iteration,
        )
        if not completed or self.token.aborted:
            LOGGER.info("iteration %d interrupted; not recorded", iteration)
            return False

        duration = max(0, self.clock() - started)
        commits = self.repo.commits_since(state.initial_commit_hash)
        state.iteration_times.append(duration)
        state.plan_file = self.options.plan_file
        progress = parse_plan(self.options.plan_path)

        self.store.save(state)

        self.commits = commits
        self.progress = progress
        self.dispatcher.notify("on_iteration_complete", iteration, duration, commits)
        self.dispatcher.notify("on_tasks_updated", progress.done, progress.total)
        self.dispatcher.notify("on_commits_updated", commits)
        return True

    def _aborted(self, iterations: int) -> LoopResult:
        # Recorded iterations stay on disk; the run can be resumed.
        self._set_status("ready")
        self.dispatcher.notify("on_abort")
        return self._result("aborted", iterations)

    def _result(self, outcome: LoopOutcome, iterations: int) -> LoopResult:
        return LoopResult(
            outcome=outcome,
            iterations=iterations,
            commits=self.commits,
            progress=self.progress,
        )

    def run(self) -> LoopResult:
        iterations = 0
        self.dispatcher.start()
        self.status = "starting"
        self.dispatcher.notify("on_status", "starting")
        try:
            try:
                model = str(self.options.validate())
                state = self._load_or_init_state()
                self.state = state
                self._clear_done_marker()
                self.session.start()
                prompt = build_prompt(self.options)

                self._set_status("ready")
                self._report_progress(state)

                while True:
                    if self._is_finished():
                        self._set_status("complete")
                        self.dispatcher.notify("on_complete")
                        return self._result("complete", iterations)
                    limit = self.options.max_iterations
                    if limit is not None and iterations >= limit:
                        LOGGER.info("iteration limit %d reached", limit)
                        self._set_status("ready")
                        return self._result("limit", iterations)
                    if not self._checkpoint() or not self._run_iteration(state, model, prompt):
                        return self._aborted(iterations)
                    iterations += 1
            finally:
                self.session.close()
        except Exception as exc:
            self.error = str(exc) if isinstance(exc, RalphError) else f"{type(exc).__name__}: {exc}"
            self._set_status("error")
            self.dispatcher.notify("on_error", self.error)
            raise
        finally:
            self.dispatcher.close()


def run_loop(
    options: LoopOptions,
    *,
    observer: LoopObserver | None = None,
    token: CancelToken | None = None,
) -> LoopResult:
    repo_root = options.repo_root
    controller = LoopController(
        options,
        store=StateStore.from_workdir(repo_root),
        repo=RepositorySnapshot(repo_root),
        session=OpenCodeSession(repo_root),
        observer=observer,
        token=token,
    )
    return controller.run()
