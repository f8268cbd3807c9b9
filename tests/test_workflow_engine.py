"""Unit tests for the workflow engine.

Tests ordering of checks (version, access, transition), reviewer
stamping, submitter-only edits, decision rules and the explicit
event link write. Uses the real config and an in-memory store.
"""

import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from copcore.access.gate import AccessGate
from copcore.errors import (
    AccessDenied,
    CollaboratorUnavailable,
    ConcurrentModification,
    DenialReason,
    InvalidStateTransition,
    NotFound,
    ValidationError,
)
from copcore.models.classification import ClassificationLevel
from copcore.models.decision import ApprovalStatus, DecisionDraft, DecisionType
from copcore.models.event import EventDraft, EventStatus
from copcore.models.geo import GeoPoint
from copcore.models.report import ReportDraft, ReportPatch, ReportStatus, ReviewAction
from copcore.models.user import IntelligenceType, UserRecord, UserRole
from copcore.persistence.entity_store import EntityKind, EntityStore
from copcore.policy.resolver import PolicyResolver
from copcore.workflow.engine import WorkflowEngine

CONFIG_DIR = Path(__file__).parent.parent / "config"
NOW = datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc)
S = ClassificationLevel.SECRET
TS = ClassificationLevel.TOP_SECRET

ANALYST = UserRecord("ana", UserRole.ANALYST_SIGINT, S)
OTHER_ANALYST = UserRecord("hum", UserRole.ANALYST_HUMINT, TS)
HQ = UserRecord("hq", UserRole.HQ, TS)
HQ2 = UserRecord("hq2", UserRole.HQ, TS)
OBSERVER = UserRecord("obs", UserRole.OBSERVER, ClassificationLevel.UNCLASSIFIED)


def _make_engine(store: EntityStore | None = None) -> WorkflowEngine:
    gate = AccessGate(PolicyResolver.from_config_dir(CONFIG_DIR).capability_table())
    return WorkflowEngine(gate, store or EntityStore(), clock=lambda: NOW)


def _draft(classification: ClassificationLevel = S) -> ReportDraft:
    return ReportDraft(
        title="Intercept",
        body="Traffic spike",
        intel_type=IntelligenceType.SIGINT,
        classification=classification,
        event_time=NOW - timedelta(hours=3),
        location=GeoPoint(34.0, 45.0),
        confidence=0.6,
    )


def _submitted(engine: WorkflowEngine, report_id: str = "RPT-00000001"):
    return engine.create_report(ANALYST, report_id, _draft(), S)


class TestReports:
    def test_create_report_pending(self) -> None:
        report, version = _submitted(_make_engine())
        assert version == 1
        assert report.status == ReportStatus.PENDING
        assert report.submitter_id == "ana"
        assert report.created_utc == NOW

    def test_create_blank_title_rejected(self) -> None:
        draft = ReportDraft(
            title="  ", body="b", intel_type=IntelligenceType.SIGINT,
            classification=S, event_time=NOW,
        )
        with pytest.raises(ValidationError) as exc:
            _make_engine().create_report(ANALYST, "RPT-00000001", draft, S)
        assert exc.value.field == "title"

    def test_create_confidence_out_of_range(self) -> None:
        draft = ReportDraft(
            title="t", body="b", intel_type=IntelligenceType.SIGINT,
            classification=S, event_time=NOW, confidence=1.5,
        )
        with pytest.raises(ValidationError) as exc:
            _make_engine().create_report(ANALYST, "RPT-00000001", draft, S)
        assert exc.value.field == "confidence"

    def test_create_naive_event_time_rejected(self) -> None:
        draft = ReportDraft(
            title="t", body="b", intel_type=IntelligenceType.SIGINT,
            classification=S, event_time=datetime(2026, 3, 2, 10, 0),
        )
        with pytest.raises(ValidationError) as exc:
            _make_engine().create_report(ANALYST, "RPT-00000001", draft, S)
        assert exc.value.field == "event_time"

    def test_patch_naive_event_time_rejected(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(ValidationError) as exc:
            engine.update_report(
                ANALYST, "RPT-00000001",
                ReportPatch(event_time=datetime(2026, 3, 2, 10, 0)), version,
            )
        assert exc.value.field == "event_time"

    def test_non_string_metadata_rejected(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(ValidationError) as exc:
            engine.update_report(
                ANALYST, "RPT-00000001", ReportPatch(metadata={"count": 3}), version,
            )
        assert exc.value.field == "metadata"
        assert engine.load(EntityKind.REPORT, "RPT-00000001")[1] == version

    def test_review_stamps_reviewer(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        report, version = engine.review_report(
            HQ, "RPT-00000001", ReviewAction.APPROVE, "confirmed", version,
        )
        assert report.status == ReportStatus.APPROVED
        assert report.reviewer_id == "hq"
        assert report.reviewed_utc == NOW
        assert report.review_comments == "confirmed"
        assert version == 2

    @pytest.mark.parametrize("user", [ANALYST, OTHER_ANALYST, OBSERVER])
    def test_review_requires_review_capability(self, user: UserRecord) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(AccessDenied) as exc:
            engine.review_report(user, "RPT-00000001", ReviewAction.APPROVE, None, version)
        assert exc.value.reason == DenialReason.INSUFFICIENT_ROLE

    def test_illegal_action_leaves_state_unchanged(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(InvalidStateTransition):
            engine.review_report(HQ, "RPT-00000001", ReviewAction.REOPEN, None, version)
        report, same_version = engine.load(EntityKind.REPORT, "RPT-00000001")
        assert report.status == ReportStatus.PENDING
        assert same_version == version

    def test_stale_version_checked_first(self) -> None:
        engine = _make_engine()
        _submitted(engine)
        with pytest.raises(ConcurrentModification):
            engine.review_report(HQ, "RPT-00000001", ReviewAction.APPROVE, None, 5)

    def test_submitter_edits_pending_report(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        report, version = engine.update_report(
            ANALYST, "RPT-00000001",
            ReportPatch(title="Revised", metadata={"k": "v"}), version,
        )
        assert report.title == "Revised"
        assert report.metadata == {"k": "v"}
        assert report.body == "Traffic spike"

    def test_non_submitter_cannot_edit(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(AccessDenied):
            engine.update_report(HQ, "RPT-00000001", ReportPatch(title="x"), version)

    def test_edit_after_approval_is_invalid_transition(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        _, version = engine.review_report(HQ, "RPT-00000001", ReviewAction.APPROVE, None, version)
        with pytest.raises(InvalidStateTransition):
            engine.update_report(ANALYST, "RPT-00000001", ReportPatch(title="x"), version)

    def test_empty_patch_rejected(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(ValidationError):
            engine.update_report(ANALYST, "RPT-00000001", ReportPatch(), version)

    def test_delete_by_reviewer(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        engine.delete_report(HQ, "RPT-00000001", version)
        with pytest.raises(NotFound):
            engine.load(EntityKind.REPORT, "RPT-00000001")

    def test_delete_by_other_analyst_denied(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        with pytest.raises(AccessDenied):
            engine.delete_report(OTHER_ANALYST, "RPT-00000001", version)

    def test_pre_commit_failure_prevents_write(self) -> None:
        engine = _make_engine()

        def failing(_entity) -> None:
            raise CollaboratorUnavailable("audit_log", OSError("disk full"))

        with pytest.raises(CollaboratorUnavailable):
            engine.create_report(ANALYST, "RPT-00000001", _draft(), S, pre_commit=failing)
        with pytest.raises(NotFound):
            engine.load(EntityKind.REPORT, "RPT-00000001")

    def test_concurrent_reviews_exactly_one_wins(self) -> None:
        engine = _make_engine()
        _, version = _submitted(engine)
        outcomes: list[str] = []
        barrier = threading.Barrier(2)

        def review(user: UserRecord, action: ReviewAction) -> None:
            barrier.wait()
            try:
                engine.review_report(user, "RPT-00000001", action, None, version)
                outcomes.append("ok")
            except ConcurrentModification:
                outcomes.append("conflict")

        threads = [
            threading.Thread(target=review, args=(HQ, ReviewAction.APPROVE)),
            threading.Thread(target=review, args=(HQ2, ReviewAction.REJECT)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(outcomes) == ["conflict", "ok"]


class TestStoreFailures:
    def test_store_errors_become_collaborator_unavailable(self) -> None:
        class BrokenStore(EntityStore):
            def load(self, kind, entity_id):
                raise ConnectionError("db down")

        engine = _make_engine(BrokenStore())
        with pytest.raises(CollaboratorUnavailable) as exc:
            engine.load(EntityKind.REPORT, "RPT-00000001")
        assert exc.value.retryable


class TestEvents:
    def test_manual_event_upgrades_classification(self) -> None:
        engine = _make_engine()
        _submitted(engine)
        draft = EventDraft(
            event_type="OBSERVATION",
            start_utc=NOW,
            description="Convoy sighted",
            classification=ClassificationLevel.CONFIDENTIAL,
            source_report_ids=frozenset({"RPT-00000001"}),
        )
        event, version = engine.create_event(HQ, "EVT-M00000001", draft)
        assert event.classification == S
        assert event.fusion_metadata["classification_upgraded_from"] == "CONFIDENTIAL"
        assert event.status == EventStatus.PENDING
        assert version == 1

    def test_manual_event_unknown_source(self) -> None:
        draft = EventDraft(
            event_type="OBSERVATION", start_utc=NOW, description="d",
            classification=S, source_report_ids=frozenset({"RPT-404"}),
        )
        with pytest.raises(NotFound):
            _make_engine().create_event(HQ, "EVT-M00000001", draft)

    def test_analyst_cannot_create_event(self) -> None:
        draft = EventDraft(
            event_type="OBSERVATION", start_utc=NOW, description="d", classification=S,
        )
        with pytest.raises(AccessDenied):
            _make_engine().create_event(ANALYST, "EVT-M00000001", draft)

    def test_manual_event_naive_start_rejected(self) -> None:
        draft = EventDraft(
            event_type="OBSERVATION", start_utc=datetime(2026, 3, 2, 10, 0),
            description="d", classification=S,
        )
        with pytest.raises(ValidationError) as exc:
            _make_engine().create_event(HQ, "EVT-M00000001", draft)
        assert exc.value.field == "start_utc"

    def test_transition_and_archive(self) -> None:
        engine = _make_engine()
        draft = EventDraft(
            event_type="OBSERVATION", start_utc=NOW, description="d", classification=S,
        )
        _, version = engine.create_event(HQ, "EVT-M00000001", draft)
        event, version = engine.transition_event(HQ, "EVT-M00000001", EventStatus.APPROVED, version)
        assert event.status == EventStatus.APPROVED
        event, version = engine.transition_event(HQ, "EVT-M00000001", EventStatus.ARCHIVED, version)
        assert event.status == EventStatus.ARCHIVED
        with pytest.raises(InvalidStateTransition):
            engine.transition_event(HQ, "EVT-M00000001", EventStatus.PENDING, version)

    def test_transition_requires_clearance(self) -> None:
        engine = _make_engine()
        draft = EventDraft(event_type="X", start_utc=NOW, description="d", classification=TS)
        _, version = engine.create_event(HQ, "EVT-M00000001", draft)
        low_hq = UserRecord("hq-low", UserRole.HQ, S)
        with pytest.raises(AccessDenied) as exc:
            engine.transition_event(low_hq, "EVT-M00000001", EventStatus.APPROVED, version)
        assert exc.value.reason == DenialReason.INSUFFICIENT_CLEARANCE


class TestDecisions:
    def _event(self, engine: WorkflowEngine) -> str:
        draft = EventDraft(event_type="X", start_utc=NOW, description="d", classification=S)
        event, _ = engine.create_event(HQ, "EVT-M00000001", draft)
        return event.event_id

    @pytest.mark.parametrize("decision_type", [
        DecisionType.MISSION_AUTHORIZATION, DecisionType.OPERATIONAL_DECISION,
    ])
    def test_justification_required(self, decision_type: DecisionType) -> None:
        with pytest.raises(ValidationError) as exc:
            _make_engine().record_decision(
                HQ, "DEC-00000001", DecisionDraft(decision_type=decision_type, reasoning=" "),
            )
        assert exc.value.field == "reasoning"

    def test_assessment_needs_no_reasoning(self) -> None:
        decision, version = _make_engine().record_decision(
            HQ, "DEC-00000001", DecisionDraft(decision_type=DecisionType.INTELLIGENCE_ASSESSMENT),
        )
        assert decision.approval_status == ApprovalStatus.PENDING
        assert version == 1

    def test_analyst_cannot_decide(self) -> None:
        with pytest.raises(AccessDenied):
            _make_engine().record_decision(
                ANALYST, "DEC-00000001",
                DecisionDraft(decision_type=DecisionType.INTELLIGENCE_ASSESSMENT),
            )

    def test_priority_range(self) -> None:
        with pytest.raises(ValidationError) as exc:
            _make_engine().record_decision(
                HQ, "DEC-00000001",
                DecisionDraft(decision_type=DecisionType.EVENT_APPROVAL, priority_level=9),
            )
        assert exc.value.field == "priority_level"

    def test_decision_linked_onto_event(self) -> None:
        engine = _make_engine()
        event_id = self._event(engine)
        engine.record_decision(HQ, "DEC-00000001", DecisionDraft(
            decision_type=DecisionType.OPERATIONAL_DECISION,
            reasoning="Act now",
            event_id=event_id,
        ))
        event, version = engine.load(EntityKind.EVENT, event_id)
        assert event.decision_ids == ("DEC-00000001",)
        assert version == 2

    def test_deferred_link(self) -> None:
        engine = _make_engine()
        event_id = self._event(engine)
        engine.record_decision(HQ, "DEC-00000001", DecisionDraft(
            decision_type=DecisionType.EVENT_APPROVAL, event_id=event_id,
        ), link=False)
        assert engine.load(EntityKind.EVENT, event_id)[0].decision_ids == ()
        engine.link_decision(event_id, "DEC-00000001")
        engine.link_decision(event_id, "DEC-00000001")
        event, version = engine.load(EntityKind.EVENT, event_id)
        assert event.decision_ids == ("DEC-00000001",)
        assert version == 2

    def test_unknown_event_not_found(self) -> None:
        with pytest.raises(NotFound):
            _make_engine().record_decision(HQ, "DEC-00000001", DecisionDraft(
                decision_type=DecisionType.EVENT_APPROVAL, event_id="EVT-missing",
            ))

    def test_only_author_updates(self) -> None:
        engine = _make_engine()
        _, version = engine.record_decision(
            HQ, "DEC-00000001", DecisionDraft(decision_type=DecisionType.EVENT_APPROVAL),
        )
        with pytest.raises(AccessDenied):
            engine.update_decision(HQ2, "DEC-00000001", ApprovalStatus.APPROVED, version)

    def test_final_status_is_irreversible(self) -> None:
        engine = _make_engine()
        _, version = engine.record_decision(
            HQ, "DEC-00000001", DecisionDraft(decision_type=DecisionType.EVENT_APPROVAL),
        )
        decision, version = engine.update_decision(
            HQ, "DEC-00000001", ApprovalStatus.APPROVED, version, action_taken="Deployed",
        )
        assert decision.approval_status == ApprovalStatus.APPROVED
        assert decision.action_taken == "Deployed"
        with pytest.raises(InvalidStateTransition):
            engine.update_decision(HQ, "DEC-00000001", ApprovalStatus.REJECTED, version)
        with pytest.raises(InvalidStateTransition):
            engine.update_decision(HQ, "DEC-00000001", ApprovalStatus.APPROVED, version)

    def test_same_status_records_action_only(self) -> None:
        engine = _make_engine()
        _, version = engine.record_decision(
            HQ, "DEC-00000001", DecisionDraft(decision_type=DecisionType.EVENT_APPROVAL),
        )
        decision, _ = engine.update_decision(
            HQ, "DEC-00000001", ApprovalStatus.PENDING, version, action_taken="Queued",
        )
        assert decision.approval_status == ApprovalStatus.PENDING
        assert decision.action_taken == "Queued"
