"""Git queries used to measure loop progress."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Protocol

from .errors import VcsUnavailable
from .util import CommandError, run_capture

LOGGER = logging.getLogger(__name__)

CaptureFn = Callable[..., str]


class Repository(Protocol):
    def capture_reference(self) -> str:
        ...

    def commits_since(self, reference: str) -> int:
        ...


class RepositorySnapshot:
    def __init__(self, repo_root: Path, *, capture: CaptureFn = run_capture) -> None:
        self.repo_root = repo_root
        self._capture = capture

    def _git(self, *args: str) -> str:
        argv = ["git", *args]
        try:
            return self._capture(argv, cwd=self.repo_root)
        except OSError as exc:
            raise VcsUnavailable(f"cannot run git: {exc}", argv=argv) from exc

    def capture_reference(self) -> str:
        try:
            out = self._git("rev-parse", "HEAD").strip()
        except CommandError as exc:
            raise VcsUnavailable(
                f"git rev-parse HEAD failed in {self.repo_root}: "
                f"{exc.stderr.strip() or f'exit {exc.returncode}'}",
                argv=exc.argv,
                returncode=exc.returncode,
                stderr=exc.stderr,
            ) from exc
        if not out:
            raise VcsUnavailable(
                f"git rev-parse HEAD returned nothing in {self.repo_root}",
                argv=["git", "rev-parse", "HEAD"],
            )
        return out

    def commits_since(self, reference: str) -> int:
        # A bad or unreachable reference reads as zero new commits.
        try:
            out = self._git("rev-list", "--count", f"{reference}..HEAD").strip()
        except CommandError as exc:
            LOGGER.warning(
                "git rev-list failed for %s (exit %s); counting 0 commits",
                reference,
                exc.returncode,
            )
            return 0
        try:
            count = int(out)
        except ValueError:
            LOGGER.warning("unexpected git rev-list output %r; counting 0 commits", out)
            return 0
        return max(0, count)
