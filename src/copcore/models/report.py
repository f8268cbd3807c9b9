"""Intelligence report records and the inputs that create or patch them.

A report is created PENDING by an analyst, edited only by its submitter
while non-terminal, and moved through review by HQ. APPROVED and
REJECTED are terminal for status purposes.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union

from copcore.models.classification import ClassificationLevel
from copcore.models.geo import GeoPoint
from copcore.models.user import IntelligenceType


class ReportStatus(str, enum.Enum):
    """Review states of a report."""
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    REQUIRES_MORE_INFO = "REQUIRES_MORE_INFO"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStatus.APPROVED, ReportStatus.REJECTED)


class ReviewAction(str, enum.Enum):
    """What a reviewer asks the report workflow to do."""
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_INFO = "REQUEST_INFO"
    START_REVIEW = "START_REVIEW"
    REOPEN = "REOPEN"


@dataclass(frozen=True)
class IntelligenceReport:
    """A submitted intelligence report."""
    report_id: str
    title: str
    body: str
    intel_type: IntelligenceType
    classification: ClassificationLevel
    submitter_id: str
    event_time: datetime
    location: Optional[GeoPoint] = None
    confidence: float = 0.5
    status: ReportStatus = ReportStatus.PENDING

    # Review stamp (set by the reviewer on any status move)
    reviewer_id: Optional[str] = None
    reviewed_utc: Optional[datetime] = None
    review_comments: Optional[str] = None

    metadata: dict[str, str] = field(default_factory=dict)
    created_utc: Optional[datetime] = None
    updated_utc: Optional[datetime] = None


@dataclass(frozen=True)
class ReportDraft:
    """Caller-supplied content for a new report.

    classification may be a level or a label; labels go through the
    lattice (unknown labels fall back to UNCLASSIFIED and are audited).
    """
    title: str
    body: str
    intel_type: IntelligenceType
    classification: Union[ClassificationLevel, str]
    event_time: datetime
    location: Optional[GeoPoint] = None
    confidence: float = 0.5
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ReportPatch:
    """Content edits. None means "leave unchanged".

    Metadata entries are merged into the existing metadata.
    """
    title: Optional[str] = None
    body: Optional[str] = None
    event_time: Optional[datetime] = None
    location: Optional[GeoPoint] = None
    confidence: Optional[float] = None
    metadata: Optional[dict[str, str]] = None

    def is_empty(self) -> bool:
        return all(
            v is None for v in (
                self.title, self.body, self.event_time,
                self.location, self.confidence, self.metadata,
            )
        )
