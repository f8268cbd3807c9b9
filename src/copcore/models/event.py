"""Event records — correlated intelligence derived from one or more reports.

An event's classification is never below the most sensitive of its
source reports. Events are created PENDING (by fusion or manually by
HQ), reviewed, and archived as a final one-way administrative step.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from copcore.models.classification import ClassificationLevel
from copcore.models.geo import GeoPoint


class EventStatus(str, enum.Enum):
    """Lifecycle states of an event."""
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    REQUIRES_MORE_INFO = "REQUIRES_MORE_INFO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    ARCHIVED = "ARCHIVED"

    @property
    def is_active(self) -> bool:
        return self not in (EventStatus.REJECTED, EventStatus.ARCHIVED)

    @property
    def requires_action(self) -> bool:
        return self in (
            EventStatus.PENDING,
            EventStatus.UNDER_REVIEW,
            EventStatus.REQUIRES_MORE_INFO,
        )


@dataclass(frozen=True)
class Event:
    """A correlated event.

    fusion_metadata is the derivation record: which reports contributed,
    the rule that merged them, and how the confidence was computed.
    It keeps report IDs even after those reports are deleted.
    """
    event_id: str
    event_type: str
    start_utc: datetime
    description: str
    confidence: float
    classification: ClassificationLevel
    end_utc: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    status: EventStatus = EventStatus.PENDING
    source_report_ids: frozenset[str] = frozenset()
    decision_ids: tuple[str, ...] = ()
    fusion_metadata: dict[str, Any] = field(default_factory=dict)
    created_by: Optional[str] = None
    reviewer_id: Optional[str] = None
    reviewed_utc: Optional[datetime] = None
    created_utc: Optional[datetime] = None


@dataclass(frozen=True)
class EventDraft:
    """Input for a manually created event."""
    event_type: str
    start_utc: datetime
    description: str
    classification: ClassificationLevel
    confidence: float = 0.5
    end_utc: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    source_report_ids: frozenset[str] = frozenset()
