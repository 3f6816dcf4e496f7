"""Classify stored branches against the live branch set."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .store import SnapshotStore


@dataclass(frozen=True)
class Classification:
    current: frozenset[str]
    obsolete: frozenset[str]


def classify(stored: Iterable[str], live: Iterable[str]) -> Classification:
    """Split stored branch names into those still alive and those deleted.

    Names are compared verbatim, without case or whitespace normalisation.
    """
    stored_set = frozenset(stored)
    live_set = frozenset(live)
    return Classification(current=stored_set & live_set, obsolete=stored_set - live_set)


def classify_named(store: SnapshotStore, branch: str) -> bool:
    """Return whether ``branch`` has stored snapshots, live or not."""
    return store.has_branch(branch)
