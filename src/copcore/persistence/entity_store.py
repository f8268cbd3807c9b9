"""Entity store — versioned persistence for reports, events and decisions.

Reference implementation of the EntityStore collaborator:
- load(kind, id) -> (entity, version), NotFound if absent
- save(kind, entity, expected_version) -> new version
- delete(kind, id, expected_version)

Optimistic concurrency: a write commits only if the caller's
expected_version still matches the stored version, otherwise
ConcurrentModification is raised and nothing changes. expected_version
None means "create": the entity must not exist yet. Versions start at 1.

The compare-and-set is guarded by a lock held only for the duration of
the store call. With a storage_path the whole state is rewritten as one
JSON document (written to a temporary file, then renamed over the old
one) after each mutation and reloaded on construction. State that cannot
be encoded raises RuntimeError and the mutation is undone. This is
suitable for single-node use; a database adapter would keep the same
interface.
"""

from __future__ import annotations

import enum
import json
import os
import threading
from pathlib import Path
from typing import Any, Callable, Optional, Union

from copcore.errors import ConcurrentModification, NotFound
from copcore.models.decision import Decision
from copcore.models.event import Event
from copcore.models.report import IntelligenceReport
from copcore.persistence import codec

Entity = Union[IntelligenceReport, Event, Decision]


class EntityKind(str, enum.Enum):
    REPORT = "report"
    EVENT = "event"
    DECISION = "decision"


_ID_FIELDS: dict[EntityKind, str] = {
    EntityKind.REPORT: "report_id",
    EntityKind.EVENT: "event_id",
    EntityKind.DECISION: "decision_id",
}

_ENCODERS: dict[EntityKind, Callable[[Any], dict[str, Any]]] = {
    EntityKind.REPORT: codec.report_to_dict,
    EntityKind.EVENT: codec.event_to_dict,
    EntityKind.DECISION: codec.decision_to_dict,
}

_DECODERS: dict[EntityKind, Callable[[dict[str, Any]], Any]] = {
    EntityKind.REPORT: codec.report_from_dict,
    EntityKind.EVENT: codec.event_from_dict,
    EntityKind.DECISION: codec.decision_from_dict,
}


def entity_id_of(kind: EntityKind, entity: Entity) -> str:
    return getattr(entity, _ID_FIELDS[kind])


class EntityStore:
    """Versioned entity store with optional JSON file persistence.

    Usage:
        store = EntityStore()                       # in-memory
        store = EntityStore(Path("data/cop.json"))  # durable

        version = store.save(EntityKind.REPORT, report, expected_version=None)
        report, version = store.load(EntityKind.REPORT, report.report_id)
        store.save(EntityKind.REPORT, updated, expected_version=version)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._path = storage_path
        self._lock = threading.Lock()
        self._entities: dict[EntityKind, dict[str, tuple[Entity, int]]] = {
            kind: {} for kind in EntityKind
        }
        if storage_path is not None and storage_path.exists():
            self._load()

    # ------------------------------------------------------------------
    # Collaborator interface
    # ------------------------------------------------------------------

    def load(self, kind: EntityKind, entity_id: str) -> tuple[Entity, int]:
        with self._lock:
            found = self._entities[kind].get(entity_id)
        if found is None:
            raise NotFound(kind.value, entity_id)
        return found

    def save(
        self,
        kind: EntityKind,
        entity: Entity,
        expected_version: Optional[int],
    ) -> int:
        """Write an entity if the version still matches. Returns new version."""
        entity_id = entity_id_of(kind, entity)
        with self._lock:
            bucket = self._entities[kind]
            current = bucket.get(entity_id)
            actual = current[1] if current is not None else None
            if actual != expected_version:
                raise ConcurrentModification(entity_id, expected_version, actual)
            new_version = (actual or 0) + 1
            bucket[entity_id] = (entity, new_version)
            try:
                self._save()
            except (OSError, RuntimeError):
                # Keep memory aligned with disk.
                if current is None:
                    del bucket[entity_id]
                else:
                    bucket[entity_id] = current
                raise
        return new_version

    def delete(
        self,
        kind: EntityKind,
        entity_id: str,
        expected_version: int,
    ) -> None:
        with self._lock:
            bucket = self._entities[kind]
            current = bucket.get(entity_id)
            if current is None:
                raise NotFound(kind.value, entity_id)
            if current[1] != expected_version:
                raise ConcurrentModification(entity_id, expected_version, current[1])
            del bucket[entity_id]
            try:
                self._save()
            except (OSError, RuntimeError):
                bucket[entity_id] = current
                raise

    # ------------------------------------------------------------------
    # Enumeration (fusion input, ID allocation, listings)
    # ------------------------------------------------------------------

    def ids(self, kind: EntityKind) -> list[str]:
        with self._lock:
            return sorted(self._entities[kind])

    def all(self, kind: EntityKind) -> list[tuple[Entity, int]]:
        """Every entity of a kind with its version, ordered by ID."""
        with self._lock:
            bucket = dict(self._entities[kind])
        return [bucket[k] for k in sorted(bucket)]

    def exists(self, kind: EntityKind, entity_id: str) -> bool:
        with self._lock:
            return entity_id in self._entities[kind]

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------

    def _load(self) -> None:
        with self._path.open("r", encoding="utf-8") as f:
            state = json.load(f)
        for kind in EntityKind:
            decode = _DECODERS[kind]
            for entity_id, record in state.get(kind.value, {}).items():
                self._entities[kind][entity_id] = (
                    decode(record["entity"]),
                    record["version"],
                )

    def _save(self) -> None:
        if self._path is None:
            return
        state: dict[str, Any] = {}
        try:
            for kind in EntityKind:
                encode = _ENCODERS[kind]
                state[kind.value] = {
                    entity_id: {"version": version, "entity": encode(entity)}
                    for entity_id, (entity, version) in self._entities[kind].items()
                }
            text = json.dumps(state, indent=2, sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise RuntimeError(f"Entity state is not JSON-serialisable: {e}") from e

        # The previous document stays in place until the new one is complete.
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, self._path)
