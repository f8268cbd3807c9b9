"""HQ decision records.

A decision is written once. Afterwards only its approval status and
action-taken text may change, and only until the status is final.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class DecisionType(str, enum.Enum):
    REPORT_APPROVAL = "REPORT_APPROVAL"
    EVENT_APPROVAL = "EVENT_APPROVAL"
    OPERATIONAL_DECISION = "OPERATIONAL_DECISION"
    INTELLIGENCE_ASSESSMENT = "INTELLIGENCE_ASSESSMENT"
    RESOURCE_ALLOCATION = "RESOURCE_ALLOCATION"
    MISSION_AUTHORIZATION = "MISSION_AUTHORIZATION"

    @property
    def requires_justification(self) -> bool:
        """Types that cannot be recorded without written reasoning."""
        return self in (
            DecisionType.OPERATIONAL_DECISION,
            DecisionType.MISSION_AUTHORIZATION,
        )


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONDITIONAL = "CONDITIONAL"
    REQUIRES_REVISION = "REQUIRES_REVISION"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_final(self) -> bool:
        return self in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED)

    @property
    def requires_action(self) -> bool:
        return self in (ApprovalStatus.PENDING, ApprovalStatus.REQUIRES_REVISION)


@dataclass(frozen=True)
class Decision:
    """A recorded HQ decision, optionally linked to an event and/or report."""
    decision_id: str
    author_id: str
    decision_type: DecisionType
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    event_id: Optional[str] = None
    report_id: Optional[str] = None
    priority_level: int = 3
    reasoning: str = ""
    notes: str = ""
    requires_action: bool = False
    action_taken: Optional[str] = None
    decision_utc: Optional[datetime] = None
    updated_utc: Optional[datetime] = None


@dataclass(frozen=True)
class DecisionDraft:
    """Input for record_decision."""
    decision_type: DecisionType
    reasoning: str = ""
    notes: str = ""
    event_id: Optional[str] = None
    report_id: Optional[str] = None
    priority_level: int = 3
    requires_action: bool = False
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
