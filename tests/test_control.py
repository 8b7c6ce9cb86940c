from __future__ import annotations

import threading

from ralph.control import CancelToken


def test_pause_resume_toggle() -> None:
    token = CancelToken()
    assert not token.pause_requested

    token.pause()
    assert token.pause_requested
    token.resume()
    assert not token.pause_requested

    assert token.toggle_pause() is True
    assert token.toggle_pause() is False


def test_wait_while_paused_returns_immediately_when_running() -> None:
    assert CancelToken().wait_while_paused(timeout=0.01) is True


def test_wait_while_paused_unblocks_on_resume() -> None:
    token = CancelToken()
    token.pause()
    results: list[bool] = []

    waiter = threading.Thread(target=lambda: results.append(token.wait_while_paused()))
    waiter.start()
    token.resume()
    waiter.join(2.0)

    assert results == [True]


def test_wait_while_paused_reports_abort() -> None:
    token = CancelToken()
    token.pause()
    results: list[bool] = []

    waiter = threading.Thread(target=lambda: results.append(token.wait_while_paused()))
    waiter.start()
    token.abort()
    waiter.join(2.0)

    assert results == [False]
    assert token.aborted


def test_abort_runs_callbacks_once() -> None:
    token = CancelToken()
    calls: list[str] = []
    token.on_abort(lambda: calls.append("a"))
    unregister = token.on_abort(lambda: calls.append("b"))
    unregister()

    token.abort()
    token.abort()

    assert calls == ["a"]


def test_failing_callback_does_not_stop_others() -> None:
    token = CancelToken()
    calls: list[str] = []

    def boom() -> None:
        raise RuntimeError("boom")

    token.on_abort(boom)
    token.on_abort(lambda: calls.append("ok"))
    token.abort()

    assert calls == ["ok"]


def test_on_abort_after_abort_runs_immediately() -> None:
    token = CancelToken()
    token.abort()
    calls: list[str] = []

    token.on_abort(lambda: calls.append("late"))

    assert calls == ["late"]
