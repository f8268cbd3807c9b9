"""Entity records and value types."""

from copcore.models.classification import (
    ClassificationLevel,
    can_access,
    highest,
    level_of,
    level_of_checked,
)
from copcore.models.decision import (
    ApprovalStatus,
    Decision,
    DecisionDraft,
    DecisionType,
)
from copcore.models.event import Event, EventDraft, EventStatus
from copcore.models.geo import BoundingBox, GeoPoint
from copcore.models.report import (
    IntelligenceReport,
    ReportDraft,
    ReportPatch,
    ReportStatus,
    ReviewAction,
)
from copcore.models.user import IntelligenceType, UserRecord, UserRole

__all__ = [
    "ApprovalStatus",
    "BoundingBox",
    "ClassificationLevel",
    "Decision",
    "DecisionDraft",
    "DecisionType",
    "Event",
    "EventDraft",
    "EventStatus",
    "GeoPoint",
    "IntelligenceReport",
    "IntelligenceType",
    "ReportDraft",
    "ReportPatch",
    "ReportStatus",
    "ReviewAction",
    "UserRecord",
    "UserRole",
    "can_access",
    "highest",
    "level_of",
    "level_of_checked",
]
