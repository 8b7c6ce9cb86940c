"""Agent session backed by the ``opencode run`` CLI."""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Any, Protocol

from .control import CancelToken
from .errors import AgentSessionError
from .events import EventSink, ToolEvent
from .util import now_ms

LOGGER = logging.getLogger(__name__)


class AgentSession(Protocol):
    def start(self) -> None:
        ...

    def run(
        self,
        *,
        model: str,
        prompt: str,
        on_event: EventSink,
        token: CancelToken,
        iteration: int | None = None,
    ) -> bool:
        """Run one unit of work. False means it was interrupted by abort."""
        ...

    def close(self) -> None:
        ...


def normalize_tool(raw_name: str) -> str:
    return raw_name.strip().lower()


def _truncate(s: str, n: int = 100) -> str:
    return s[: n - 3] + "..." if len(s) > n else s


def tool_detail(canonical_name: str, params: Any) -> str:
    """Pick a short human-readable detail from tool parameters."""
    if not isinstance(params, dict):
        return ""
    if canonical_name in ("read", "glob", "grep"):
        keys: tuple[str, ...] = ("file_path", "filePath", "path", "pattern", "query")
    elif canonical_name in ("edit", "write"):
        keys = ("file_path", "filePath", "path")
    elif canonical_name == "bash":
        for key in ("command", "cmd"):
            v = params.get(key)
            if isinstance(v, str) and v:
                return _truncate(v.strip(), 80)
        return ""
    elif canonical_name == "task":
        keys = ("description",)
    else:
        for v in params.values():
            if isinstance(v, str) and v:
                return _truncate(v, 60)
        return ""
    for key in keys:
        v = params.get(key)
        if isinstance(v, str) and v:
            return v
    return ""


def _error_message(err: Any, fallback: str) -> str:
    if isinstance(err, dict):
        data = err.get("data", {})
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            return data["message"]
        if isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err.get("name"), str):
            return err["name"]
        return json.dumps(err)
    if err is None:
        return fallback
    return str(err)


def decode_event(line: str) -> ToolEvent | None:
    """Decode one ``opencode run --format json`` line."""
    if not line.strip():
        return None
    try:
        event = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(event, dict):
        return None

    etype = event.get("type", "")
    part = event.get("part", {})
    if not isinstance(part, dict):
        part = {}

    if etype == "tool_use":
        raw = part.get("tool", "?")
        canonical = normalize_tool(raw if isinstance(raw, str) else "?")
        state = part.get("state", {})
        if not isinstance(state, dict):
            state = {}
        status = state.get("status", "")
        return ToolEvent(
            kind="tool",
            timestamp=now_ms(),
            name=canonical,
            detail=tool_detail(canonical, state.get("input", {})),
            ok=status != "error",
            payload=event,
        )

    if etype == "text":
        text = part.get("text", "")
        if not isinstance(text, str) or not text.strip():
            return None
        return ToolEvent(kind="text", timestamp=now_ms(), detail=text, payload=event)

    if etype in ("step_start", "step_finish"):
        return ToolEvent(kind="step", timestamp=now_ms(), name=etype, payload=event)

    if etype == "error":
        return ToolEvent(
            kind="error",
            timestamp=now_ms(),
            detail=_error_message(event.get("error"), line.strip()),
            ok=False,
            payload=event,
        )

    return None


class OpenCodeSession:
    name = "opencode"

    def __init__(
        self,
        repo_root: Path,
        *,
        executable: str = "opencode",
        log_dir: Path | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.executable = executable
        self.log_dir = log_dir if log_dir is not None else repo_root / ".ralph" / "logs"
        self._proc: subprocess.Popen[str] | None = None
        self._lock = threading.RLock()
        self._started = False
        self._closed = False

    def build_argv(self, *, model: str, prompt: str) -> list[str]:
        return [
            self.executable,
            "run",
            "--format",
            "json",
            "--dir",
            str(self.repo_root),
            "--model",
            model,
            prompt,
        ]

    def start(self) -> None:
        if self._started:
            return
        if shutil.which(self.executable) is None:
            raise AgentSessionError(
                f"{self.executable!r} not found on PATH; install opencode to run the loop"
            )
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._started = True
        self._closed = False
        LOGGER.debug("opencode session ready in %s", self.repo_root)

    def _terminate(self) -> None:
        with self._lock:
            proc = self._proc
        if proc is not None and proc.poll() is None:
            LOGGER.debug("terminating opencode pid %s", proc.pid)
            proc.terminate()

    def _reap(self, proc: subprocess.Popen[str]) -> int:
        try:
            return proc.wait(timeout=10)
        except subprocess.TimeoutExpired:
            proc.kill()
            return proc.wait()

    def run(
        self,
        *,
        model: str,
        prompt: str,
        on_event: EventSink,
        token: CancelToken,
        iteration: int | None = None,
    ) -> bool:
        if not self._started or self._closed:
            raise AgentSessionError("agent session is not running")
        if token.aborted:
            return False

        argv = self.build_argv(model=model, prompt=prompt)
        tee_path = self.log_dir / (
            f"iteration-{iteration}.jsonl" if iteration is not None else "run.jsonl"
        )
        error_message = ""
        try:
            proc = subprocess.Popen(
                argv,
                cwd=self.repo_root,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            raise AgentSessionError(f"cannot start opencode: {exc}") from exc

        with self._lock:
            self._proc = proc
        unregister = token.on_abort(self._terminate)
        try:
            assert proc.stdout is not None
            with open(tee_path, "w", encoding="utf-8") as tee_fh:
                for raw in proc.stdout:
                    line = raw.rstrip("\n")
                    tee_fh.write(line + "\n")
                    tee_fh.flush()
                    event = decode_event(line)
                    if event is None:
                        continue
                    if event.kind == "error" and not error_message:
                        error_message = event.detail
                    on_event(event)
            exit_code = self._reap(proc)
        finally:
            unregister()
            if proc.poll() is None:
                proc.kill()
                proc.wait()
            with self._lock:
                self._proc = None

        if token.aborted:
            return False

        on_event(
            ToolEvent(
                kind="done",
                timestamp=now_ms(),
                ok=exit_code == 0 and not error_message,
                payload={"exit_code": exit_code},
            )
        )
        if exit_code != 0:
            detail = f": {error_message}" if error_message else ""
            raise AgentSessionError(f"opencode exited with status {exit_code}{detail}")
        if error_message:
            raise AgentSessionError(f"opencode reported an error: {error_message}")
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._terminate()
        self._started = False
