from __future__ import annotations

from pathlib import Path

from ralph.plan import PlanProgress, count_tasks, parse_plan


def test_parse_plan_counts_checked_and_unchecked(write_plan) -> None:
    path = write_plan(done=2, todo=3)

    assert parse_plan(path) == PlanProgress(done=2, total=5)


def test_parse_plan_missing_file_is_no_tasks(tmp_path: Path) -> None:
    assert parse_plan(tmp_path / "nope.md") == PlanProgress(done=0, total=0)


def test_checked_marker_is_case_insensitive() -> None:
    progress = count_tasks("- [x] one\n- [X] two\n- [ ] three\n")

    assert progress.done == 2
    assert progress.total == 3


def test_unchecked_marker_is_exact() -> None:
    progress = count_tasks("- [ ] real\n-[ ] nospace\n- [  ] wide\n* [ ] star\n")

    assert progress == PlanProgress(done=0, total=1)


def test_other_content_is_ignored() -> None:
    text = "# Title\n\nSome prose mentioning [x] and [ ].\n\n- plain bullet\n- [x] done\n"

    assert count_tasks(text) == PlanProgress(done=1, total=1)


def test_progress_helpers() -> None:
    assert PlanProgress(done=4, total=4).is_complete
    assert not PlanProgress(done=3, total=4).is_complete
    assert not PlanProgress(done=0, total=0).is_complete
    assert PlanProgress(done=1, total=4).remaining == 3
