"""Access gate — two-dimensional grant/deny over role capability and clearance.

Both checks must pass:
1. Capability: the requester's role holds the capability the operation
   needs (fixed table, loaded once from access_policy.json).
2. Clearance: the requester's clearance dominates the target's
   classification (via the classification lattice).

Pure computation: no side effects. Every check returns an
AccessDecision carrying a reason code so callers can audit it; callers
never get a bare boolean.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, TypeVar, Union

from copcore.access.capabilities import Capability, CapabilityTable
from copcore.errors import AccessDenied, DenialReason
from copcore.models.classification import ClassificationLevel, can_access
from copcore.models.event import Event
from copcore.models.report import IntelligenceReport
from copcore.models.user import IntelligenceType, UserRecord

Readable = Union[IntelligenceReport, Event]
R = TypeVar("R", IntelligenceReport, Event)


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a gate check."""
    granted: bool
    reason: DenialReason
    detail: str = ""

    def __bool__(self) -> bool:
        return self.granted

    def raise_if_denied(self) -> None:
        if not self.granted:
            raise AccessDenied(self.reason, self.detail)


_GRANTED = AccessDecision(granted=True, reason=DenialReason.GRANTED)


def _deny_role(detail: str) -> AccessDecision:
    return AccessDecision(False, DenialReason.INSUFFICIENT_ROLE, detail)


def _deny_clearance(
    clearance: ClassificationLevel, required: ClassificationLevel,
) -> AccessDecision:
    return AccessDecision(
        False,
        DenialReason.INSUFFICIENT_CLEARANCE,
        f"clearance {clearance.name} does not dominate {required.name}",
    )


class AccessGate:
    """Grants or denies operations for a user.

    Usage:
        gate = AccessGate(resolver.capability_table())
        decision = gate.can_review(user, report.classification)
        if not decision:
            audit(decision.reason)
    """

    def __init__(self, table: CapabilityTable) -> None:
        self._table = table

    @property
    def table(self) -> CapabilityTable:
        return self._table

    # ------------------------------------------------------------------
    # Generic check
    # ------------------------------------------------------------------

    def check(
        self,
        user: UserRecord,
        capability: Capability,
        classification: Optional[ClassificationLevel] = None,
    ) -> AccessDecision:
        """Capability check, then (if a target level is given) clearance."""
        if not user.active:
            return _deny_role(f"user {user.user_id} is inactive")
        if not self._table.has(user.role, capability):
            return _deny_role(f"role {user.role.value} lacks {capability.value}")
        if classification is not None and not can_access(classification, user.clearance):
            return _deny_clearance(user.clearance, classification)
        return _GRANTED

    # ------------------------------------------------------------------
    # Operation-specific checks
    # ------------------------------------------------------------------

    def can_submit(
        self,
        user: UserRecord,
        intel_type: IntelligenceType,
        classification: ClassificationLevel,
    ) -> AccessDecision:
        """Analysts submit only their own specialization, at or below clearance."""
        decision = self.check(user, Capability.SUBMIT_REPORT)
        if not decision:
            return decision
        specialization = self._table.specialization_of(user.role)
        if specialization is not None and specialization != intel_type:
            return _deny_role(
                f"role {user.role.value} may not submit {intel_type.value} reports"
            )
        if not can_access(classification, user.clearance):
            return _deny_clearance(user.clearance, classification)
        return _GRANTED

    def can_review(
        self, user: UserRecord, classification: ClassificationLevel,
    ) -> AccessDecision:
        return self.check(user, Capability.REVIEW_REPORT, classification)

    def can_transition_event(
        self, user: UserRecord, classification: ClassificationLevel,
    ) -> AccessDecision:
        return self.check(user, Capability.TRANSITION_EVENT, classification)

    def can_create_decision(self, user: UserRecord) -> AccessDecision:
        return self.check(user, Capability.CREATE_DECISION)

    def can_run_fusion(self, user: UserRecord) -> AccessDecision:
        return self.check(user, Capability.RUN_FUSION)

    def can_modify_report_content(
        self, user: UserRecord, report: IntelligenceReport,
    ) -> AccessDecision:
        """Only the submitter edits content."""
        if not user.active:
            return _deny_role(f"user {user.user_id} is inactive")
        if user.user_id != report.submitter_id:
            return _deny_role("only the submitter may edit report content")
        return _GRANTED

    def can_delete_report(
        self, user: UserRecord, report: IntelligenceReport,
    ) -> AccessDecision:
        """Submitter, or a review-capable user cleared for the report."""
        if not user.active:
            return _deny_role(f"user {user.user_id} is inactive")
        if user.user_id == report.submitter_id:
            return _GRANTED
        return self.can_review(user, report.classification)

    # ------------------------------------------------------------------
    # Read checks
    # ------------------------------------------------------------------

    def can_read_report(
        self, user: UserRecord, report: IntelligenceReport,
    ) -> AccessDecision:
        # Submitters read their own reports, still subject to clearance.
        return self._can_read(
            user, report.classification, report.status.value,
            self._table.restricted_view.report_statuses,
            owner_id=report.submitter_id,
        )

    def can_read_event(self, user: UserRecord, event: Event) -> AccessDecision:
        return self._can_read(
            user, event.classification, event.status.value,
            self._table.restricted_view.event_statuses,
        )

    def can_read(self, user: UserRecord, entity: Readable) -> AccessDecision:
        if isinstance(entity, IntelligenceReport):
            return self.can_read_report(user, entity)
        return self.can_read_event(user, entity)

    def filter_readable(self, user: UserRecord, entities: Iterable[R]) -> list[R]:
        """Keep only the entities this user may read, preserving order."""
        return [e for e in entities if self.can_read(user, e)]

    def _can_read(
        self,
        user: UserRecord,
        classification: ClassificationLevel,
        status: str,
        restricted_statuses: frozenset[str],
        owner_id: Optional[str] = None,
    ) -> AccessDecision:
        if not user.active:
            return _deny_role(f"user {user.user_id} is inactive")
        caps = self._table.capabilities_of(user.role)
        if Capability.VIEW_ALL_INTEL in caps or (
            owner_id is not None and owner_id == user.user_id
        ):
            if not can_access(classification, user.clearance):
                return _deny_clearance(user.clearance, classification)
            return _GRANTED

        if Capability.VIEW_APPROVED_INTEL not in caps:
            return _deny_role(f"role {user.role.value} may not view intelligence")
        restricted = self._table.restricted_view
        if status not in restricted_statuses:
            return _deny_role(f"role {user.role.value} may not view {status} content")
        if not can_access(classification, user.clearance):
            return _deny_clearance(user.clearance, classification)
        if not can_access(classification, restricted.max_classification):
            return _deny_role(
                f"role {user.role.value} limited to "
                f"{restricted.max_classification.name} content"
            )
        return _GRANTED
