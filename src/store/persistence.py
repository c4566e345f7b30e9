"""Snapshot persistence -- store interface + implementations.

- SnapshotPersistence: abstract load/save of the whole snapshot
- InMemorySnapshotPersistence: for tests
- JsonFileSnapshotPersistence: one JSON document on local disk

Persistence is best-effort. A missing or corrupt file loads as ``None``;
save failures are logged by the change listener and never undo or block
the mutation that triggered them. The desired grade is session intent and
is not persisted.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

from src.models.grades import GradeSnapshot
from src.store.grade_store import GradeStore
from src.store.serialization import SnapshotImportError, loads, snapshot_to_dict

logger = logging.getLogger(__name__)


def _persistable(snapshot: GradeSnapshot) -> GradeSnapshot:
    return snapshot.model_copy(update={"desired_grade": None})


class SnapshotPersistence(ABC):
    """Abstract interface for snapshot persistence."""

    @abstractmethod
    def load(self) -> GradeSnapshot | None:
        """Return the persisted snapshot, or None if there is none."""

    @abstractmethod
    def save(self, snapshot: GradeSnapshot) -> None:
        """Persist ``snapshot``, replacing whatever was stored."""


class InMemorySnapshotPersistence(SnapshotPersistence):
    """In-memory persistence for testing."""

    def __init__(self, snapshot: GradeSnapshot | None = None) -> None:
        self._snapshot = _persistable(snapshot) if snapshot is not None else None
        self.save_count = 0

    def load(self) -> GradeSnapshot | None:
        return self._snapshot

    def save(self, snapshot: GradeSnapshot) -> None:
        self._snapshot = _persistable(snapshot)
        self.save_count += 1


class JsonFileSnapshotPersistence(SnapshotPersistence):
    """Snapshot stored as a single JSON file.

    Writes go to a sibling temp file that is then renamed over the target,
    so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> GradeSnapshot | None:
        if not self._path.exists():
            return None
        try:
            return loads(self._path.read_bytes())
        except (OSError, SnapshotImportError) as exc:
            logger.warning("Ignoring unreadable snapshot at %s: %s", self._path, exc)
            return None

    def save(self, snapshot: GradeSnapshot) -> None:
        data = snapshot_to_dict(_persistable(snapshot))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp.replace(self._path)


def persist_on_change(store: GradeStore, persistence: SnapshotPersistence) -> Callable[[], None]:
    """Save the snapshot after every store mutation.

    Returns the unsubscribe callable.
    """

    def _save(snapshot: GradeSnapshot) -> None:
        try:
            persistence.save(snapshot)
        except OSError:
            logger.exception("Failed to persist grade snapshot")

    return store.subscribe(_save)
