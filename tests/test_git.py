from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from ralph.errors import VcsUnavailable
from ralph.git import RepositorySnapshot
from ralph.util import CommandError


class FakeGit:
    """Scripted ``run_capture`` replacement keyed by the git subcommand."""

    def __init__(self, head: str = "aaa111\n", commits: dict[str, object] | None = None) -> None:
        self.head = head
        self.commits = commits or {}
        self.calls: list[list[str]] = []

    def __call__(self, argv: list[str], *, cwd: Path | None = None, env=None) -> str:
        self.calls.append(list(argv))
        if argv[1] == "rev-parse":
            if isinstance(self.head, Exception):
                raise self.head
            return self.head
        ref = argv[-1].removesuffix("..HEAD")
        value = self.commits.get(ref, "0\n")
        if isinstance(value, Exception):
            raise value
        return str(value)


def test_capture_reference_returns_trimmed_hash(tmp_path: Path) -> None:
    fake = FakeGit(head="abc123def456\n")

    assert RepositorySnapshot(tmp_path, capture=fake).capture_reference() == "abc123def456"
    assert fake.calls == [["git", "rev-parse", "HEAD"]]


def test_capture_reference_failure_is_vcs_unavailable(tmp_path: Path) -> None:
    fake = FakeGit()
    fake.head = CommandError(["git", "rev-parse", "HEAD"], 128, "", "fatal: not a git repository\n")

    with pytest.raises(VcsUnavailable, match="not a git repository") as raised:
        RepositorySnapshot(tmp_path, capture=fake).capture_reference()

    assert raised.value.returncode == 128


def test_capture_reference_empty_output(tmp_path: Path) -> None:
    with pytest.raises(VcsUnavailable, match="returned nothing"):
        RepositorySnapshot(tmp_path, capture=FakeGit(head="  \n")).capture_reference()


def test_missing_git_binary_is_vcs_unavailable(tmp_path: Path) -> None:
    def capture(argv, *, cwd=None, env=None):
        raise FileNotFoundError(2, "No such file or directory", "git")

    snapshot = RepositorySnapshot(tmp_path, capture=capture)

    with pytest.raises(VcsUnavailable, match="cannot run git"):
        snapshot.capture_reference()
    with pytest.raises(VcsUnavailable):
        snapshot.commits_since("aaa111")


def test_commits_since_counts_and_is_stable(tmp_path: Path) -> None:
    fake = FakeGit(commits={"aaa111": "2\n"})
    snapshot = RepositorySnapshot(tmp_path, capture=fake)

    assert snapshot.commits_since("aaa111") == 2
    assert snapshot.commits_since("aaa111") == 2

    fake.commits["aaa111"] = "3\n"
    assert snapshot.commits_since("aaa111") == 3
    assert fake.calls[-1] == ["git", "rev-list", "--count", "aaa111..HEAD"]


@pytest.mark.parametrize(
    "output",
    [
        "",
        "not-a-number",
        CommandError(["git"], 128, "", "fatal: bad revision"),
    ],
)
def test_commits_since_degrades_to_zero(tmp_path: Path, output: object, caplog) -> None:
    snapshot = RepositorySnapshot(tmp_path, capture=FakeGit(commits={"gone": output}))

    with caplog.at_level("WARNING", logger="ralph.git"):
        assert snapshot.commits_since("gone") == 0

    assert "counting 0 commits" in caplog.text


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_against_real_repository(tmp_path: Path) -> None:
    def git(*args: str) -> None:
        subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

    git("init", "-q")
    git("config", "user.email", "ralph@example.com")
    git("config", "user.name", "ralph")
    git("config", "commit.gpgsign", "false")
    git("commit", "-q", "--allow-empty", "-m", "base")

    snapshot = RepositorySnapshot(tmp_path)
    base = snapshot.capture_reference()
    assert len(base) == 40
    assert snapshot.commits_since(base) == 0

    git("commit", "-q", "--allow-empty", "-m", "one")
    git("commit", "-q", "--allow-empty", "-m", "two")

    assert snapshot.commits_since(base) == 2
    assert snapshot.commits_since("0" * 40) == 0
