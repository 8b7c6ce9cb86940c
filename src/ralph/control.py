from __future__ import annotations

import logging
import threading
from typing import Callable

LOGGER = logging.getLogger(__name__)

AbortCallback = Callable[[], None]


class CancelToken:
    """Pause/resume/abort signals shared between the operator and the loop.

    Any thread (or a signal handler) may call :meth:`pause`, :meth:`resume`
    or :meth:`abort`. The loop polls :attr:`pause_requested` at iteration
    boundaries and blocks in :meth:`wait_while_paused`. Abort callbacks run
    immediately so in-flight work can be interrupted.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._aborted = threading.Event()
        self._paused = False
        self._callbacks: list[AbortCallback] = []

    @property
    def aborted(self) -> bool:
        return self._aborted.is_set()

    @property
    def pause_requested(self) -> bool:
        with self._cond:
            return self._paused

    def pause(self) -> None:
        with self._cond:
            self._paused = True
            self._cond.notify_all()

    def resume(self) -> None:
        with self._cond:
            self._paused = False
            self._cond.notify_all()

    def toggle_pause(self) -> bool:
        with self._cond:
            self._paused = not self._paused
            self._cond.notify_all()
            return self._paused

    def abort(self) -> None:
        if self._aborted.is_set():
            return
        self._aborted.set()
        with self._cond:
            callbacks = list(self._callbacks)
            self._cond.notify_all()
        for callback in callbacks:
            try:
                callback()
            except Exception:
                LOGGER.exception("abort callback failed")

    def on_abort(self, callback: AbortCallback) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it.

        If the token is already aborted the callback runs right away.
        """
        with self._cond:
            self._callbacks.append(callback)

        def unregister() -> None:
            with self._cond:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        if self._aborted.is_set():
            callback()
        return unregister

    def wait_while_paused(self, timeout: float | None = None) -> bool:
        """Block while paused. Returns True to continue, False if aborted."""
        with self._cond:
            while self._paused and not self._aborted.is_set():
                if not self._cond.wait(timeout):
                    break
            return not self._aborted.is_set()
