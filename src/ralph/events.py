from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Literal

LOGGER = logging.getLogger(__name__)

LoopStatus = Literal["starting", "ready", "running", "paused", "complete", "error"]
ToolEventKind = Literal["tool", "text", "step", "error", "done"]


@dataclass(frozen=True)
class ToolEvent:
    kind: ToolEventKind
    timestamp: int
    name: str = ""
    detail: str = ""
    ok: bool = True
    payload: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[ToolEvent], None]


class LoopObserver:
    """Receives loop notifications. Override only what you need."""

    def on_status(self, status: LoopStatus) -> None:
        pass

    def on_iteration_start(self, iteration: int) -> None:
        pass

    def on_event(self, event: ToolEvent) -> None:
        pass

    def on_iteration_complete(self, iteration: int, duration: int, commits: int) -> None:
        pass

    def on_tasks_updated(self, done: int, total: int) -> None:
        pass

    def on_commits_updated(self, commits: int) -> None:
        pass

    def on_pause(self) -> None:
        pass

    def on_resume(self) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_abort(self) -> None:
        pass

    def on_error(self, error: str) -> None:
        pass


_STOP = object()


class ObserverDispatcher:
    """Deliver notifications to observers on a background thread.

    Calls are queued in order and never block the caller. Exceptions raised
    by an observer are logged and dropped; the other observers still run.
    """

    def __init__(self, *observers: LoopObserver, name: str = "ralph-observer") -> None:
        self.observers = list(observers)
        self._queue: queue.Queue[Any] = queue.Queue()
        self._thread = threading.Thread(target=self._drain, name=name, daemon=True)
        self._started = False
        self._closed = False
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._started = True
        self._thread.start()

    def notify(self, method: str, *args: Any) -> None:
        if self._closed:
            return
        if not self._started:
            self.start()
        self._queue.put((method, args))

    def _drain(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                method, args = item
                for observer in self.observers:
                    try:
                        getattr(observer, method)(*args)
                    except Exception:
                        LOGGER.exception("observer %s.%s failed", type(observer).__name__, method)
            finally:
                self._queue.task_done()

    def close(self, timeout: float | None = 5.0) -> bool:
        """Stop after delivering what is queued. Returns False on timeout."""
        with self._lock:
            if self._closed:
                return True
            self._closed = True
            started = self._started
        if not started:
            return True
        self._queue.put(_STOP)
        self._thread.join(timeout)
        if self._thread.is_alive():
            LOGGER.warning("observer did not drain within %ss", timeout)
            return False
        return True
