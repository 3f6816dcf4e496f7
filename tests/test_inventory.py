from __future__ import annotations

from pathlib import Path

from diffsnap.inventory import classify, classify_named
from diffsnap.store import SnapshotStore


def test_classify_splits_stored_branches() -> None:
    result = classify(["main", "feature-a", "old-fix"], ["main", "feature-a", "develop"])

    assert result.current == {"main", "feature-a"}
    assert result.obsolete == {"old-fix"}


def test_classify_with_no_live_branches_marks_everything_obsolete() -> None:
    result = classify(["main", "dev"], [])

    assert result.current == frozenset()
    assert result.obsolete == {"main", "dev"}


def test_classify_compares_names_verbatim() -> None:
    result = classify(["Main", "dev "], ["main", "dev"])

    assert result.current == frozenset()
    assert result.obsolete == {"Main", "dev "}


def test_classify_is_a_partition_of_stored_names() -> None:
    stored = {"a", "b", "c", "d"}
    live = {"b", "d", "e"}

    result = classify(stored, live)

    assert result.obsolete == stored - live
    assert result.current == stored & live
    assert result.current | result.obsolete == stored
    assert not result.current & result.obsolete


def test_classify_named_reports_stored_snapshots(tmp_path: Path) -> None:
    (tmp_path / "main").mkdir()
    (tmp_path / "main" / "20240101-000000.patch").write_text("", encoding="utf-8")
    (tmp_path / "empty").mkdir()
    store = SnapshotStore(tmp_path)

    assert classify_named(store, "main") is True
    assert classify_named(store, "empty") is False
    assert classify_named(store, "never-seen") is False
