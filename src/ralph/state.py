"""Durable loop state: one JSON document per working directory."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CorruptState
from .util import now_ms

STATE_FILE = ".ralph-state.json"


class PersistedState(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid", strict=True)

    start_time: int = Field(alias="startTime")
    initial_commit_hash: str = Field(alias="initialCommitHash")
    iteration_times: list[int] = Field(alias="iterationTimes")
    plan_file: str = Field(alias="planFile")

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2) + "\n"


def initial_state(plan_file: str, commit_hash: str, *, now: int | None = None) -> PersistedState:
    return PersistedState(
        start_time=now_ms() if now is None else now,
        initial_commit_hash=commit_hash,
        iteration_times=[],
        plan_file=plan_file,
    )


class StateStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def from_workdir(cls, repo_root: Path) -> "StateStore":
        return cls(repo_root / STATE_FILE)

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> PersistedState | None:
        if not self.path.exists():
            return None
        try:
            raw = self.path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptState(self.path, f"not valid UTF-8 ({exc.reason})") from exc
        try:
            return PersistedState.model_validate_json(raw)
        except ValidationError as exc:
            errors = exc.errors()
            reason = errors[0]["msg"] if errors else str(exc)
            if errors and errors[0].get("loc"):
                loc = ".".join(str(part) for part in errors[0]["loc"])
                reason = f"{loc}: {reason}"
            raise CorruptState(self.path, reason) from exc

    def save(self, state: PersistedState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(state.to_json())
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def clear(self) -> bool:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return False
        return True
