"""Append-only audit log — the record of every mutation and every denial.

Each record is immutable once written and carries a SHA-256 hash of
its canonical JSON form. The log can be persisted to a JSONL file (one
JSON object per line) and is integrity-checked when loaded back.

Fail-closed: the service writes the audit record before committing the
entity change, so a mutation cannot land without its audit entry.
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


class AuditKind(str, enum.Enum):
    """Classification of audit records."""
    REPORT_SUBMITTED = "report_submitted"
    REPORT_UPDATED = "report_updated"
    REPORT_REVIEWED = "report_reviewed"
    REPORT_DELETED = "report_deleted"
    EVENT_CREATED = "event_created"
    EVENT_TRANSITION = "event_transition"
    FUSION_COMMITTED = "fusion_committed"
    DECISION_RECORDED = "decision_recorded"
    DECISION_UPDATED = "decision_updated"
    ACCESS_DENIED = "access_denied"
    CLASSIFICATION_FALLBACK = "classification_fallback"


def _canonical_hash(
    record_id: str,
    kind: str,
    timestamp_utc: str,
    actor_id: str,
    payload: dict[str, Any],
) -> str:
    canonical = json.dumps(
        {
            "record_id": record_id,
            "kind": kind,
            "timestamp_utc": timestamp_utc,
            "actor_id": actor_id,
            "payload": payload,
        },
        sort_keys=True,
        ensure_ascii=False,
    ).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


@dataclass(frozen=True)
class AuditRecord:
    """A single immutable audit entry."""
    record_id: str
    kind: AuditKind
    timestamp_utc: str
    actor_id: str
    payload: dict[str, Any]
    record_hash: str

    @staticmethod
    def create(
        record_id: str,
        kind: AuditKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp_utc: Optional[datetime] = None,
    ) -> AuditRecord:
        """Create a new record with computed hash."""
        ts = timestamp_utc or datetime.now(timezone.utc)
        ts_str = ts.strftime("%Y-%m-%dT%H:%M:%SZ")
        return AuditRecord(
            record_id=record_id,
            kind=kind,
            timestamp_utc=ts_str,
            actor_id=actor_id,
            payload=payload,
            record_hash=_canonical_hash(record_id, kind.value, ts_str, actor_id, payload),
        )


class AuditLog:
    """Append-only audit log with optional JSONL persistence.

    Records can only be appended, never modified or removed.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._records: list[AuditRecord] = []
        self._storage_path = storage_path
        self._record_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, record: AuditRecord) -> None:
        """Append a record.

        Raises ValueError if record_id is a duplicate (replay protection).
        """
        if record.record_id in self._record_ids:
            raise ValueError(f"Duplicate audit record ID: {record.record_id}")

        if self._storage_path:
            self._append_to_file(record)

        self._records.append(record)
        self._record_ids.add(record.record_id)

    def records(self, kind: Optional[AuditKind] = None) -> list[AuditRecord]:
        """Return records, optionally filtered by kind."""
        if kind is None:
            return list(self._records)
        return [r for r in self._records if r.kind == kind]

    def records_for(self, entity_id: str) -> list[AuditRecord]:
        """Records whose payload names this entity."""
        return [
            r for r in self._records
            if entity_id in (
                r.payload.get("report_id"),
                r.payload.get("event_id"),
                r.payload.get("decision_id"),
            )
        ]

    @property
    def count(self) -> int:
        return len(self._records)

    @property
    def last_record(self) -> Optional[AuditRecord]:
        return self._records[-1] if self._records else None

    def _append_to_file(self, record: AuditRecord) -> None:
        line = {
            "record_id": record.record_id,
            "kind": record.kind.value,
            "timestamp_utc": record.timestamp_utc,
            "actor_id": record.actor_id,
            "payload": record.payload,
            "record_hash": record.record_hash,
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(line, sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load records with integrity verification.

        Fail-closed: rejects tampered records (hash mismatch) and
        duplicate record IDs.
        """
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                data = json.loads(line)
                record_id = data["record_id"]

                if record_id in self._record_ids:
                    raise ValueError(
                        f"Duplicate audit record ID on recovery (line {line_num}): {record_id}"
                    )

                expected = _canonical_hash(
                    record_id, data["kind"], data["timestamp_utc"],
                    data["actor_id"], data["payload"],
                )
                if data["record_hash"] != expected:
                    raise ValueError(
                        f"Integrity check failed (line {line_num}): record {record_id} "
                        f"stored hash {data['record_hash']} != computed {expected}"
                    )

                self._records.append(AuditRecord(
                    record_id=record_id,
                    kind=AuditKind(data["kind"]),
                    timestamp_utc=data["timestamp_utc"],
                    actor_id=data["actor_id"],
                    payload=data["payload"],
                    record_hash=data["record_hash"],
                ))
                self._record_ids.add(record_id)
