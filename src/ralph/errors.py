from __future__ import annotations

from pathlib import Path


class RalphError(Exception):
    pass


class ConfigurationError(RalphError, ValueError):
    pass


class VcsUnavailable(RalphError):
    def __init__(
        self,
        message: str,
        *,
        argv: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.argv = argv or []
        self.returncode = returncode
        self.stderr = stderr


class CorruptState(RalphError):
    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"corrupt state file {path}: {reason}")
        self.path = path
        self.reason = reason


class AgentSessionError(RalphError):
    pass
