"""Workflow engine — the only place entity state changes.

Every mutating operation follows the same order:
1. Load the entity and its version from the store.
2. Compare the caller's expected_version with the loaded version.
3. Ask the access gate; a denial raises AccessDenied with its reason.
4. Resolve the move through the transition table (illegal pairs raise
   InvalidStateTransition, never a silent no-op).
5. Build the new record with dataclasses.replace, run the pre-commit
   hook (the service writes its audit record there) and save with the
   expected version. The store re-checks the version under its own
   lock, so two racing writers cannot both commit.

Store failures the core cannot classify (OSError, RuntimeError) are
raised as CollaboratorUnavailable.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, Optional, Union

from copcore.access.capabilities import Capability
from copcore.access.gate import AccessGate
from copcore.errors import (
    AccessDenied,
    CollaboratorUnavailable,
    ConcurrentModification,
    DenialReason,
    InvalidStateTransition,
    ValidationError,
)
from copcore.models.classification import ClassificationLevel, highest
from copcore.models.decision import ApprovalStatus, Decision, DecisionDraft
from copcore.models.event import Event, EventDraft, EventStatus
from copcore.models.report import (
    IntelligenceReport,
    ReportDraft,
    ReportPatch,
    ReviewAction,
)
from copcore.models.user import UserRecord
from copcore.persistence.entity_store import Entity, EntityKind, EntityStore
from copcore.workflow.state_machine import (
    DECISION_TRANSITIONS,
    EVENT_TRANSITIONS,
    REPORT_TRANSITIONS,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
PreCommit = Callable[[Entity], None]
Versioned = tuple[Any, int]

# ConnectionError and TimeoutError are OSError subclasses.
_COLLABORATOR_FAILURES = (OSError, RuntimeError)

# Appending a decision ID to an event commutes with any other write, so
# a lost race is retried against the fresh version.
_LINK_RETRIES = 3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def collaborator(name: str) -> Iterator[None]:
    """Raise unclassified failures of a collaborator as CollaboratorUnavailable."""
    try:
        yield
    except _COLLABORATOR_FAILURES as e:
        logger.error("%s failed: %s", name, e)
        raise CollaboratorUnavailable(name, e) from e


def _check_version(entity_id: str, expected: Optional[int], actual: int) -> None:
    if expected != actual:
        raise ConcurrentModification(entity_id, expected, actual)


def _check_confidence(value: float) -> None:
    if not (0.0 <= value <= 1.0):
        raise ValidationError("confidence", f"must be in [0, 1], got {value}")


def _check_aware(field: str, value: Optional[datetime]) -> None:
    if value is not None and value.utcoffset() is None:
        raise ValidationError(field, "must be timezone-aware")


def _check_metadata(metadata: dict[str, str]) -> None:
    for key, value in metadata.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValidationError("metadata", f"keys and values must be strings, got {key!r}")


class WorkflowEngine:
    """Report, event and decision state machines over a versioned store.

    Usage:
        engine = WorkflowEngine(gate, store)
        report, version = engine.create_report(analyst, "RPT-00000001", draft, level)
        report, version = engine.review_report(
            hq, report.report_id, ReviewAction.APPROVE, "ok", version,
        )
    """

    def __init__(
        self,
        gate: AccessGate,
        store: EntityStore,
        clock: Optional[Clock] = None,
    ) -> None:
        self._gate = gate
        self._store = store
        self._clock = clock or utc_now

    @property
    def gate(self) -> AccessGate:
        return self._gate

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def load(self, kind: EntityKind, entity_id: str) -> Versioned:
        with collaborator("entity_store"):
            return self._store.load(kind, entity_id)

    def _commit(
        self,
        kind: EntityKind,
        entity: Entity,
        expected_version: Optional[int],
        pre_commit: Optional[PreCommit],
    ) -> int:
        if pre_commit is not None:
            pre_commit(entity)
        with collaborator("entity_store"):
            return self._store.save(kind, entity, expected_version)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def create_report(
        self,
        user: UserRecord,
        report_id: str,
        draft: ReportDraft,
        classification: ClassificationLevel,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Create a PENDING report owned by the submitting analyst."""
        self._gate.can_submit(user, draft.intel_type, classification).raise_if_denied()
        if not draft.title.strip():
            raise ValidationError("title", "must not be blank")
        if not draft.body.strip():
            raise ValidationError("body", "must not be blank")
        _check_confidence(draft.confidence)
        _check_aware("event_time", draft.event_time)
        _check_metadata(draft.metadata)

        now = self._clock()
        report = IntelligenceReport(
            report_id=report_id,
            title=draft.title.strip(),
            body=draft.body,
            intel_type=draft.intel_type,
            classification=classification,
            submitter_id=user.user_id,
            event_time=draft.event_time,
            location=draft.location,
            confidence=draft.confidence,
            metadata=dict(draft.metadata),
            created_utc=now,
            updated_utc=now,
        )
        version = self._commit(EntityKind.REPORT, report, None, pre_commit)
        logger.info("Report %s submitted by %s", report_id, user.user_id)
        return report, version

    def update_report(
        self,
        user: UserRecord,
        report_id: str,
        patch: ReportPatch,
        expected_version: int,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Apply a content patch. Submitter only, non-terminal only."""
        report, version = self.load(EntityKind.REPORT, report_id)
        _check_version(report_id, expected_version, version)
        self._gate.can_modify_report_content(user, report).raise_if_denied()
        if report.status.is_terminal:
            raise InvalidStateTransition(report.status.value, "EDIT")
        if patch.is_empty():
            raise ValidationError("patch", "no fields to update")

        changes: dict[str, Any] = {}
        if patch.title is not None:
            if not patch.title.strip():
                raise ValidationError("title", "must not be blank")
            changes["title"] = patch.title.strip()
        if patch.body is not None:
            if not patch.body.strip():
                raise ValidationError("body", "must not be blank")
            changes["body"] = patch.body
        if patch.event_time is not None:
            _check_aware("event_time", patch.event_time)
            changes["event_time"] = patch.event_time
        if patch.location is not None:
            changes["location"] = patch.location
        if patch.confidence is not None:
            _check_confidence(patch.confidence)
            changes["confidence"] = patch.confidence
        if patch.metadata is not None:
            _check_metadata(patch.metadata)
            changes["metadata"] = {**report.metadata, **patch.metadata}

        updated = dataclasses.replace(report, updated_utc=self._clock(), **changes)
        new_version = self._commit(EntityKind.REPORT, updated, version, pre_commit)
        return updated, new_version

    def review_report(
        self,
        user: UserRecord,
        report_id: str,
        action: ReviewAction,
        comments: Optional[str],
        expected_version: int,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Move a report through review, stamping the reviewer."""
        report, version = self.load(EntityKind.REPORT, report_id)
        _check_version(report_id, expected_version, version)
        self._gate.can_review(user, report.classification).raise_if_denied()
        target = REPORT_TRANSITIONS.next_state(report.status, action)

        now = self._clock()
        updated = dataclasses.replace(
            report,
            status=target,
            reviewer_id=user.user_id,
            reviewed_utc=now,
            review_comments=comments if comments is not None else report.review_comments,
            updated_utc=now,
        )
        new_version = self._commit(EntityKind.REPORT, updated, version, pre_commit)
        logger.info(
            "Report %s: %s -> %s by %s",
            report_id, report.status.value, target.value, user.user_id,
        )
        return updated, new_version

    def delete_report(
        self,
        user: UserRecord,
        report_id: str,
        expected_version: int,
        pre_commit: Optional[PreCommit] = None,
    ) -> IntelligenceReport:
        """Remove a report. Fused events keep their historical references."""
        report, version = self.load(EntityKind.REPORT, report_id)
        _check_version(report_id, expected_version, version)
        self._gate.can_delete_report(user, report).raise_if_denied()
        if pre_commit is not None:
            pre_commit(report)
        with collaborator("entity_store"):
            self._store.delete(EntityKind.REPORT, report_id, version)
        logger.info("Report %s deleted by %s", report_id, user.user_id)
        return report

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(
        self,
        user: UserRecord,
        event_id: str,
        draft: EventDraft,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Manually create a PENDING event.

        The event's classification is raised to the highest of its source
        reports when the draft sets it lower.
        """
        self._gate.check(user, Capability.TRANSITION_EVENT).raise_if_denied()
        sources: list[IntelligenceReport] = []
        for report_id in sorted(draft.source_report_ids):
            report, _ = self.load(EntityKind.REPORT, report_id)
            self._gate.can_read_report(user, report).raise_if_denied()
            sources.append(report)
        _check_confidence(draft.confidence)
        if not draft.description.strip():
            raise ValidationError("description", "must not be blank")
        _check_aware("start_utc", draft.start_utc)
        _check_aware("end_utc", draft.end_utc)
        if draft.end_utc is not None and draft.end_utc < draft.start_utc:
            raise ValidationError("end_utc", "must not precede start_utc")

        classification = highest(
            [draft.classification] + [r.classification for r in sources]
        )
        self._gate.can_transition_event(user, classification).raise_if_denied()

        metadata: dict[str, Any] = {"member_report_ids": [r.report_id for r in sources]}
        if classification != draft.classification:
            metadata["classification_upgraded_from"] = draft.classification.name

        event = Event(
            event_id=event_id,
            event_type=draft.event_type,
            start_utc=draft.start_utc,
            end_utc=draft.end_utc,
            location=draft.location,
            description=draft.description,
            confidence=draft.confidence,
            classification=classification,
            source_report_ids=frozenset(r.report_id for r in sources),
            fusion_metadata=metadata,
            created_by=user.user_id,
            created_utc=self._clock(),
        )
        version = self._commit(EntityKind.EVENT, event, None, pre_commit)
        logger.info("Event %s created by %s", event_id, user.user_id)
        return event, version

    def store_fused_event(
        self,
        user: UserRecord,
        event: Event,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Persist an event produced by the fusion engine."""
        self._gate.can_run_fusion(user).raise_if_denied()
        if event.status != EventStatus.PENDING:
            raise ValidationError("status", "fused events are created PENDING")
        stamped = dataclasses.replace(
            event,
            created_by=user.user_id,
            created_utc=event.created_utc or self._clock(),
        )
        version = self._commit(EntityKind.EVENT, stamped, None, pre_commit)
        return stamped, version

    def transition_event(
        self,
        user: UserRecord,
        event_id: str,
        target: EventStatus,
        expected_version: int,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        event, version = self.load(EntityKind.EVENT, event_id)
        _check_version(event_id, expected_version, version)
        self._gate.can_transition_event(user, event.classification).raise_if_denied()
        new_status = EVENT_TRANSITIONS.next_state(event.status, target)

        updated = dataclasses.replace(
            event,
            status=new_status,
            reviewer_id=user.user_id,
            reviewed_utc=self._clock(),
        )
        new_version = self._commit(EntityKind.EVENT, updated, version, pre_commit)
        logger.info(
            "Event %s: %s -> %s by %s",
            event_id, event.status.value, new_status.value, user.user_id,
        )
        return updated, new_version

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def record_decision(
        self,
        user: UserRecord,
        decision_id: str,
        draft: DecisionDraft,
        pre_commit: Optional[PreCommit] = None,
        link: bool = True,
    ) -> Versioned:
        """Record an HQ decision, then link it onto its event.

        The event link is a separate write made after the decision is
        stored, so a link failure raised from here leaves the decision
        committed. Callers that must not report such a failure as a failed
        recording pass link=False and call link_decision themselves.
        """
        self._gate.can_create_decision(user).raise_if_denied()
        if draft.decision_type.requires_justification and not draft.reasoning.strip():
            raise ValidationError(
                "reasoning",
                f"{draft.decision_type.value} decisions require written reasoning",
            )
        if not (1 <= draft.priority_level <= 5):
            raise ValidationError(
                "priority_level", f"must be in 1..5, got {draft.priority_level}",
            )
        if draft.approval_status.is_final:
            raise ValidationError(
                "approval_status", "a decision cannot be recorded already final",
            )

        if draft.event_id is not None:
            event, _ = self.load(EntityKind.EVENT, draft.event_id)
            self._gate.can_read_event(user, event).raise_if_denied()
        if draft.report_id is not None:
            report, _ = self.load(EntityKind.REPORT, draft.report_id)
            self._gate.can_read_report(user, report).raise_if_denied()

        now = self._clock()
        decision = Decision(
            decision_id=decision_id,
            author_id=user.user_id,
            decision_type=draft.decision_type,
            approval_status=draft.approval_status,
            event_id=draft.event_id,
            report_id=draft.report_id,
            priority_level=draft.priority_level,
            reasoning=draft.reasoning,
            notes=draft.notes,
            requires_action=draft.requires_action,
            decision_utc=now,
            updated_utc=now,
        )
        version = self._commit(EntityKind.DECISION, decision, None, pre_commit)
        logger.info(
            "Decision %s (%s) recorded by %s",
            decision_id, decision.decision_type.value, user.user_id,
        )
        if link and decision.event_id is not None:
            self.link_decision(decision.event_id, decision_id)
        return decision, version

    def link_decision(self, event_id: str, decision_id: str) -> None:
        """Append a decision ID to an event, retrying lost races."""
        for attempt in range(_LINK_RETRIES):
            event, version = self.load(EntityKind.EVENT, event_id)
            if decision_id in event.decision_ids:
                return
            updated = dataclasses.replace(
                event, decision_ids=event.decision_ids + (decision_id,),
            )
            try:
                with collaborator("entity_store"):
                    self._store.save(EntityKind.EVENT, updated, version)
                return
            except ConcurrentModification:
                if attempt == _LINK_RETRIES - 1:
                    raise
                logger.warning(
                    "Event %s changed while linking decision %s; retrying",
                    event_id, decision_id,
                )

    def update_decision(
        self,
        user: UserRecord,
        decision_id: str,
        status: ApprovalStatus,
        expected_version: int,
        action_taken: Optional[str] = None,
        pre_commit: Optional[PreCommit] = None,
    ) -> Versioned:
        """Author-only status/action update while the decision is not final.

        Passing the current status leaves it unchanged and only records
        action_taken.
        """
        decision, version = self.load(EntityKind.DECISION, decision_id)
        _check_version(decision_id, expected_version, version)
        self._gate.can_create_decision(user).raise_if_denied()
        if user.user_id != decision.author_id:
            raise AccessDenied(
                DenialReason.INSUFFICIENT_ROLE, "only the author may update a decision",
            )

        if status == decision.approval_status:
            if DECISION_TRANSITIONS.is_terminal(status):
                raise InvalidStateTransition(status.value, status.value)
            new_status = status
        else:
            new_status = DECISION_TRANSITIONS.next_state(decision.approval_status, status)

        updated = dataclasses.replace(
            decision,
            approval_status=new_status,
            action_taken=action_taken if action_taken is not None else decision.action_taken,
            updated_utc=self._clock(),
        )
        new_version = self._commit(EntityKind.DECISION, updated, version, pre_commit)
        logger.info(
            "Decision %s: %s -> %s by %s",
            decision_id, decision.approval_status.value, new_status.value, user.user_id,
        )
        return updated, new_version


def entity_kind_of(kind: Union[EntityKind, str]) -> EntityKind:
    """Accept either an EntityKind or its string value."""
    try:
        return EntityKind(kind)
    except ValueError:
        raise ValidationError("kind", f"unknown entity kind: {kind!r}") from None
