"""COP service — unified facade over the access, workflow and fusion core.

This is the primary interface for programmatic access to the core.
It orchestrates all subsystems:
- Identity (requester lookup; unknown or inactive users are denied)
- Reports (submit, edit, review, delete, read, list)
- Fusion (dry-run proposals and idempotent commits)
- Events (manual creation, status transitions, archive)
- Decisions (record, status updates)
- Geospatial retrieval (radius and bounding-box queries)
- Audit (append-only log of every mutation and every denial)

Every operation returns a ServiceResult. Engines raise CopError
subclasses; this facade is the single place they become failed
results. Audit records are never silently dropped: the audit write
happens before the entity write, and if it fails the operation fails
closed without touching the entity.

Read results are always filtered through the access gate here, so a
caller cannot bypass read denial by forgetting to filter.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Protocol, Union

from copcore.access.gate import AccessGate
from copcore.errors import (
    AccessDenied,
    CollaboratorUnavailable,
    CopError,
    DenialReason,
    NotFound,
    ValidationError,
)
from copcore.fusion.config import FusionConfig
from copcore.fusion.engine import FusionEngine
from copcore.geo.index import InMemoryGeoIndex
from copcore.models.classification import level_of_checked
from copcore.models.decision import ApprovalStatus, DecisionDraft
from copcore.models.event import Event, EventDraft, EventStatus
from copcore.models.geo import BoundingBox, GeoPoint
from copcore.models.report import (
    ReportDraft,
    ReportPatch,
    ReportStatus,
    ReviewAction,
)
from copcore.models.user import UserRecord
from copcore.persistence.audit_log import AuditKind, AuditLog, AuditRecord
from copcore.persistence.entity_store import EntityKind, EntityStore, entity_id_of
from copcore.policy.resolver import PolicyResolver
from copcore.workflow.engine import (
    Clock,
    WorkflowEngine,
    collaborator,
    entity_kind_of,
    utc_now,
)

logger = logging.getLogger(__name__)

_ID_PREFIXES: dict[EntityKind, str] = {
    EntityKind.REPORT: "RPT-",
    EntityKind.EVENT: "EVT-M",
    EntityKind.DECISION: "DEC-",
}


class IdentityStore(Protocol):
    def lookup_user(self, user_id: str) -> UserRecord: ...


class GeoIndex(Protocol):
    def put(self, kind: str, entity_id: str, point: GeoPoint) -> None: ...
    def remove(self, kind: str, entity_id: str) -> None: ...
    def within_radius(self, center: GeoPoint, radius_m: float, kind: str) -> list[str]: ...
    def bounding_query(self, box: BoundingBox, kind: str) -> list[str]: ...


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation.

    value carries the primary entity (or list of entities) on success;
    error carries the CopError on failure.
    """
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    value: Any = None
    error: Optional[CopError] = None


def _failure(error: CopError) -> ServiceResult:
    return ServiceResult(success=False, errors=[str(error)], error=error)


class CopService:
    """Unified COP core facade.

    Usage:
        resolver = PolicyResolver.from_config_dir(config_dir)
        directory = UserDirectory()
        directory.register(UserRecord("ana", UserRole.ANALYST_SIGINT, ClassificationLevel.SECRET))
        service = CopService(resolver, directory)

        result = service.submit_report("ana", draft)
        report_id = result.data["report_id"]
        result = service.review_report(
            "hq", report_id, ReviewAction.APPROVE, "confirmed", result.data["version"],
        )
        result = service.commit_fusion("hq")

    Persistence (optional):
        service = CopService(
            resolver, directory,
            store=EntityStore(Path("data/entities.json")),
            audit_log=AuditLog(Path("data/audit.jsonl")),
        )
        # Entities are reloaded and the geo index rebuilt on construction.
    """

    def __init__(
        self,
        resolver: PolicyResolver,
        identity: IdentityStore,
        store: Optional[EntityStore] = None,
        audit_log: Optional[AuditLog] = None,
        geo_index: Optional[GeoIndex] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._resolver = resolver
        self._identity = identity
        self._store = store if store is not None else EntityStore()
        self._audit_log = audit_log if audit_log is not None else AuditLog()
        self._geo_index = geo_index if geo_index is not None else InMemoryGeoIndex()
        self._clock = clock or utc_now

        self._gate = AccessGate(resolver.capability_table())
        self._workflow = WorkflowEngine(self._gate, self._store, self._clock)
        self._fusion = FusionEngine(resolver.fusion_config())

        self._id_lock = threading.Lock()
        # Initialise counters from persisted state to avoid ID collision on restart
        self._counters = {
            kind: self._highest_allocated(kind) for kind in _ID_PREFIXES
        }
        self._audit_counter = self._audit_log.count

        # Set when an entity was committed but the geo index could not be
        # updated. Entity state is correct; spatial queries may be stale.
        self._index_degraded: bool = False

        self._rebuild_geo_index()

    @classmethod
    def from_config_dir(
        cls,
        config_dir: Path,
        identity: IdentityStore,
        **kwargs: Any,
    ) -> CopService:
        return cls(PolicyResolver.from_config_dir(config_dir), identity, **kwargs)

    @property
    def gate(self) -> AccessGate:
        return self._gate

    @property
    def audit_log(self) -> AuditLog:
        return self._audit_log

    @property
    def index_degraded(self) -> bool:
        return self._index_degraded

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def submit_report(self, requester: str, draft: ReportDraft) -> ServiceResult:
        """Create a PENDING report owned by the requester."""
        def action(user: UserRecord) -> ServiceResult:
            level, recognised = level_of_checked(draft.classification)
            self._gate.can_submit(user, draft.intel_type, level).raise_if_denied()
            if not recognised:
                logger.warning(
                    "Report from %s carries unrecognised classification %r; "
                    "treating as UNCLASSIFIED",
                    user.user_id, draft.classification,
                )
                self._audit(AuditKind.CLASSIFICATION_FALLBACK, user.user_id, {
                    "label": str(draft.classification),
                    "resolved": level.name,
                })
            report_id = self._next_id(EntityKind.REPORT)
            report, version = self._workflow.create_report(
                user, report_id, draft, level,
                pre_commit=lambda r: self._audit(
                    AuditKind.REPORT_SUBMITTED, user.user_id, {
                        "report_id": r.report_id,
                        "intel_type": r.intel_type.value,
                        "classification": r.classification.name,
                    },
                ),
            )
            warning = self._index_put(EntityKind.REPORT, report_id, report.location)
            return self._ok(report, version, {"report_id": report_id}, warning)

        return self._execute("submit_report", requester, action)

    def update_report(
        self,
        requester: str,
        report_id: str,
        patch: ReportPatch,
        expected_version: int,
    ) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            report, version = self._workflow.update_report(
                user, report_id, patch, expected_version,
                pre_commit=lambda r: self._audit(
                    AuditKind.REPORT_UPDATED, user.user_id, {
                        "report_id": report_id,
                        "expected_version": expected_version,
                    },
                ),
            )
            warning = None
            if patch.location is not None:
                warning = self._index_put(EntityKind.REPORT, report_id, report.location)
            return self._ok(report, version, {"report_id": report_id}, warning)

        return self._execute("update_report", requester, action, report_id=report_id)

    def review_report(
        self,
        requester: str,
        report_id: str,
        decision: ReviewAction,
        comments: Optional[str],
        expected_version: int,
    ) -> ServiceResult:
        """Apply a review action (approve, reject, request info, ...)."""
        def action(user: UserRecord) -> ServiceResult:
            report, version = self._workflow.review_report(
                user, report_id, decision, comments, expected_version,
                pre_commit=lambda r: self._audit(
                    AuditKind.REPORT_REVIEWED, user.user_id, {
                        "report_id": report_id,
                        "action": decision.value,
                        "status": r.status.value,
                        "expected_version": expected_version,
                    },
                ),
            )
            return self._ok(report, version, {
                "report_id": report_id, "status": report.status.value,
            })

        return self._execute("review_report", requester, action, report_id=report_id)

    def delete_report(
        self, requester: str, report_id: str, expected_version: int,
    ) -> ServiceResult:
        """Remove a report. Fused events keep their historical references."""
        def action(user: UserRecord) -> ServiceResult:
            report = self._workflow.delete_report(
                user, report_id, expected_version,
                pre_commit=lambda r: self._audit(
                    AuditKind.REPORT_DELETED, user.user_id, {
                        "report_id": report_id,
                        "status": r.status.value,
                        "expected_version": expected_version,
                    },
                ),
            )
            warning = self._index_remove(EntityKind.REPORT, report_id)
            data: dict[str, Any] = {"report_id": report_id}
            if warning:
                data["warning"] = warning
            return ServiceResult(success=True, data=data, value=report)

        return self._execute("delete_report", requester, action, report_id=report_id)

    def get_report(self, requester: str, report_id: str) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            report, version = self._workflow.load(EntityKind.REPORT, report_id)
            self._gate.can_read_report(user, report).raise_if_denied()
            return self._ok(report, version, {"report_id": report_id})

        return self._execute("get_report", requester, action, report_id=report_id)

    def list_reports(
        self, requester: str, status: Optional[ReportStatus] = None,
    ) -> ServiceResult:
        """Reports the requester may read, ordered by ID."""
        def action(user: UserRecord) -> ServiceResult:
            reports = [
                r for r, _ in self._all(EntityKind.REPORT)
                if status is None or r.status == status
            ]
            visible = self._gate.filter_readable(user, reports)
            return ServiceResult(
                success=True,
                data={"report_ids": [r.report_id for r in visible]},
                value=visible,
            )

        return self._execute("list_reports", requester, action)

    # ------------------------------------------------------------------
    # Fusion
    # ------------------------------------------------------------------

    def fuse(
        self,
        report_ids: Iterable[str],
        config: Optional[FusionConfig] = None,
        requester: Optional[str] = None,
    ) -> ServiceResult:
        """Propose events for the given approved reports. Nothing is stored.

        With a requester, the requester must hold RUN_FUSION and be able
        to read every named report.
        """
        ids = sorted(set(report_ids))

        def propose(user: Optional[UserRecord]) -> ServiceResult:
            if user is not None:
                self._gate.can_run_fusion(user).raise_if_denied()
            reports = []
            for report_id in ids:
                report, _ = self._workflow.load(EntityKind.REPORT, report_id)
                if user is not None:
                    self._gate.can_read_report(user, report).raise_if_denied()
                reports.append(report)
            events = self._fusion.fuse(reports, config)
            return ServiceResult(
                success=True,
                data={"event_ids": [e.event_id for e in events]},
                value=events,
            )

        if requester is None:
            try:
                return propose(None)
            except CopError as e:
                return _failure(e)
        return self._execute("fuse", requester, propose)

    def commit_fusion(
        self,
        requester: str,
        report_ids: Optional[Iterable[str]] = None,
        config: Optional[FusionConfig] = None,
    ) -> ServiceResult:
        """Fuse and persist the resulting events.

        With report_ids None, every APPROVED report takes part whatever
        the requester's clearance, so the stored clusters do not depend
        on who ran the fusion. Each event is classified at the highest
        level of its sources, and the result lists only the events the
        requester may read. Named report_ids must each be readable.
        Events that already exist (same member set, hence same ID) are
        left untouched, so committing twice is a no-op.
        """
        def action(user: UserRecord) -> ServiceResult:
            self._gate.can_run_fusion(user).raise_if_denied()
            if report_ids is None:
                reports = [
                    r for r, _ in self._all(EntityKind.REPORT)
                    if r.status == ReportStatus.APPROVED
                ]
            else:
                reports = []
                for report_id in sorted(set(report_ids)):
                    report, _ = self._workflow.load(EntityKind.REPORT, report_id)
                    self._gate.can_read_report(user, report).raise_if_denied()
                    reports.append(report)

            proposed = self._fusion.fuse(reports, config, created_utc=self._clock())
            created: list[Event] = []
            existing: list[Event] = []
            warnings: list[str] = []
            for event in proposed:
                if self._exists(EntityKind.EVENT, event.event_id):
                    existing.append(event)
                    continue
                stored, _ = self._workflow.store_fused_event(
                    user, event,
                    pre_commit=lambda e: self._audit(
                        AuditKind.FUSION_COMMITTED, user.user_id, {
                            "event_id": e.event_id,
                            "source_report_ids": sorted(e.source_report_ids),
                            "confidence": e.confidence,
                            "classification": e.classification.name,
                        },
                    ),
                )
                created.append(stored)
                warning = self._index_put(EntityKind.EVENT, stored.event_id, stored.location)
                if warning and self._gate.can_read_event(user, stored):
                    warnings.append(warning)

            logger.info(
                "Fusion by %s: %d event(s) created, %d already present",
                user.user_id, len(created), len(existing),
            )
            visible = self._gate.filter_readable(user, created)
            data: dict[str, Any] = {
                "created_event_ids": [e.event_id for e in visible],
                "existing_event_ids": [
                    e.event_id for e in self._gate.filter_readable(user, existing)
                ],
            }
            if warnings:
                data["warning"] = warnings[0]
            return ServiceResult(success=True, data=data, value=visible)

        return self._execute("commit_fusion", requester, action)

    def correlated_reports(
        self,
        requester: str,
        center: GeoPoint,
        start: datetime,
        end: datetime,
        radius_m: Optional[float] = None,
    ) -> ServiceResult:
        """Approved reports near a point within a time window, newest first."""
        def action(user: UserRecord) -> ServiceResult:
            readable = self._gate.filter_readable(
                user, [r for r, _ in self._all(EntityKind.REPORT)],
            )
            hits = self._fusion.correlated_reports(readable, center, start, end, radius_m)
            return ServiceResult(
                success=True,
                data={"report_ids": [r.report_id for r in hits]},
                value=hits,
            )

        return self._execute("correlated_reports", requester, action)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def create_event(self, requester: str, draft: EventDraft) -> ServiceResult:
        """Manually create a PENDING event (HQ)."""
        def action(user: UserRecord) -> ServiceResult:
            event_id = self._next_id(EntityKind.EVENT)
            event, version = self._workflow.create_event(
                user, event_id, draft,
                pre_commit=lambda e: self._audit(
                    AuditKind.EVENT_CREATED, user.user_id, {
                        "event_id": e.event_id,
                        "classification": e.classification.name,
                        "source_report_ids": sorted(e.source_report_ids),
                    },
                ),
            )
            warning = self._index_put(EntityKind.EVENT, event_id, event.location)
            return self._ok(event, version, {"event_id": event_id}, warning)

        return self._execute("create_event", requester, action)

    def transition_event(
        self,
        requester: str,
        event_id: str,
        target: EventStatus,
        expected_version: int,
    ) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            event, version = self._workflow.transition_event(
                user, event_id, target, expected_version,
                pre_commit=lambda e: self._audit(
                    AuditKind.EVENT_TRANSITION, user.user_id, {
                        "event_id": event_id,
                        "status": e.status.value,
                        "expected_version": expected_version,
                    },
                ),
            )
            return self._ok(event, version, {
                "event_id": event_id, "status": event.status.value,
            })

        return self._execute("transition_event", requester, action, event_id=event_id)

    def archive_event(
        self, requester: str, event_id: str, expected_version: int,
    ) -> ServiceResult:
        return self.transition_event(
            requester, event_id, EventStatus.ARCHIVED, expected_version,
        )

    def get_event(self, requester: str, event_id: str) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            event, version = self._workflow.load(EntityKind.EVENT, event_id)
            self._gate.can_read_event(user, event).raise_if_denied()
            return self._ok(event, version, {"event_id": event_id})

        return self._execute("get_event", requester, action, event_id=event_id)

    def list_events(
        self, requester: str, status: Optional[EventStatus] = None,
    ) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            events = [
                e for e, _ in self._all(EntityKind.EVENT)
                if status is None or e.status == status
            ]
            visible = self._gate.filter_readable(user, events)
            return ServiceResult(
                success=True,
                data={"event_ids": [e.event_id for e in visible]},
                value=visible,
            )

        return self._execute("list_events", requester, action)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def record_decision(self, requester: str, draft: DecisionDraft) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            self._gate.can_create_decision(user).raise_if_denied()
            decision_id = self._next_id(EntityKind.DECISION)
            decision, version = self._workflow.record_decision(
                user, decision_id, draft,
                pre_commit=lambda d: self._audit(
                    AuditKind.DECISION_RECORDED, user.user_id, {
                        "decision_id": d.decision_id,
                        "decision_type": d.decision_type.value,
                        "event_id": d.event_id,
                        "report_id": d.report_id,
                    },
                ),
                link=False,
            )
            warning = None
            if decision.event_id is not None:
                warning = self._link_decision(decision.event_id, decision_id)
            return self._ok(decision, version, {"decision_id": decision_id}, warning)

        return self._execute("record_decision", requester, action)

    def update_decision_status(
        self,
        requester: str,
        decision_id: str,
        status: ApprovalStatus,
        expected_version: int,
        action_taken: Optional[str] = None,
    ) -> ServiceResult:
        def action(user: UserRecord) -> ServiceResult:
            decision, version = self._workflow.update_decision(
                user, decision_id, status, expected_version, action_taken,
                pre_commit=lambda d: self._audit(
                    AuditKind.DECISION_UPDATED, user.user_id, {
                        "decision_id": decision_id,
                        "approval_status": d.approval_status.value,
                        "expected_version": expected_version,
                    },
                ),
            )
            return self._ok(decision, version, {
                "decision_id": decision_id,
                "approval_status": decision.approval_status.value,
            })

        return self._execute(
            "update_decision_status", requester, action, decision_id=decision_id,
        )

    # ------------------------------------------------------------------
    # Geospatial retrieval
    # ------------------------------------------------------------------

    def query_within_radius(
        self,
        requester: str,
        center: GeoPoint,
        radius_m: float,
        kind: Union[EntityKind, str],
    ) -> ServiceResult:
        """Readable reports or events within radius_m, nearest first."""
        def action(user: UserRecord) -> ServiceResult:
            entity_kind = self._spatial_kind(kind)
            if radius_m < 0:
                raise ValidationError("radius_m", "must be non-negative")
            with collaborator("geo_index"):
                ids = self._geo_index.within_radius(center, radius_m, entity_kind.value)
            return self._visible(user, entity_kind, ids)

        return self._execute("query_within_radius", requester, action)

    def query_bounding_box(
        self,
        requester: str,
        box: BoundingBox,
        kind: Union[EntityKind, str],
    ) -> ServiceResult:
        """Readable reports or events inside the box, ordered by ID."""
        def action(user: UserRecord) -> ServiceResult:
            entity_kind = self._spatial_kind(kind)
            with collaborator("geo_index"):
                ids = self._geo_index.bounding_query(box, entity_kind.value)
            return self._visible(user, entity_kind, ids)

        return self._execute("query_bounding_box", requester, action)

    # ------------------------------------------------------------------
    # Internal: request handling
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        requester: str,
        action: Callable[[UserRecord], ServiceResult],
        **context: str,
    ) -> ServiceResult:
        """Resolve the requester, run the action, turn CopErrors into results."""
        user: Optional[UserRecord] = None
        try:
            user = self._resolve(requester)
            return action(user)
        except AccessDenied as e:
            return self._denied(operation, requester, user, e, context)
        except CopError as e:
            logger.info("%s by %s failed: %s", operation, requester, e)
            return _failure(e)

    def _resolve(self, requester: str) -> UserRecord:
        with collaborator("identity_store"):
            try:
                return self._identity.lookup_user(requester)
            except NotFound:
                raise AccessDenied(
                    DenialReason.INSUFFICIENT_ROLE, f"unknown requester {requester!r}",
                ) from None

    def _denied(
        self,
        operation: str,
        requester: str,
        user: Optional[UserRecord],
        error: AccessDenied,
        context: dict[str, str],
    ) -> ServiceResult:
        """Audit the full reason, then apply the disclosure policy."""
        logger.warning(
            "Access denied: %s by %s (%s)",
            operation, requester, error.reason.value if error.reason else "unknown",
        )
        try:
            self._audit(AuditKind.ACCESS_DENIED, requester, {
                "operation": operation,
                "reason": error.reason.value if error.reason else None,
                "detail": error.detail,
                **context,
            })
        except CollaboratorUnavailable as e:
            return _failure(e)
        if user is not None and user.active and self._gate.table.reveals_reason_to(user.role):
            return _failure(error)
        return _failure(error.redacted())

    # ------------------------------------------------------------------
    # Internal: audit
    # ------------------------------------------------------------------

    def _audit(self, kind: AuditKind, actor_id: str, payload: dict[str, Any]) -> None:
        """Append an audit record. Raises CollaboratorUnavailable on failure."""
        with self._id_lock:
            self._audit_counter += 1
            record_id = f"AUD-{self._audit_counter:08d}"
        record = AuditRecord.create(
            record_id=record_id,
            kind=kind,
            actor_id=actor_id,
            payload=payload,
            timestamp_utc=self._clock(),
        )
        try:
            self._audit_log.append(record)
        except (OSError, ValueError) as e:
            logger.error("Audit-trail failure: %s", e)
            raise CollaboratorUnavailable("audit_log", e) from e

    # ------------------------------------------------------------------
    # Internal: store and index helpers
    # ------------------------------------------------------------------

    def _all(self, kind: EntityKind) -> list[tuple[Any, int]]:
        with collaborator("entity_store"):
            return self._store.all(kind)

    def _exists(self, kind: EntityKind, entity_id: str) -> bool:
        with collaborator("entity_store"):
            return self._store.exists(kind, entity_id)

    def _next_id(self, kind: EntityKind) -> str:
        with self._id_lock:
            self._counters[kind] += 1
            return f"{_ID_PREFIXES[kind]}{self._counters[kind]:08d}"

    def _highest_allocated(self, kind: EntityKind) -> int:
        prefix = _ID_PREFIXES[kind]
        highest = 0
        for entity_id in self._store.ids(kind):
            suffix = entity_id[len(prefix):]
            if entity_id.startswith(prefix) and suffix.isdigit():
                highest = max(highest, int(suffix))
        return highest

    def _rebuild_geo_index(self) -> None:
        for kind in (EntityKind.REPORT, EntityKind.EVENT):
            for entity, _ in self._store.all(kind):
                if entity.location is not None:
                    self._geo_index.put(kind.value, entity_id_of(kind, entity), entity.location)

    def _index_put(
        self, kind: EntityKind, entity_id: str, point: Optional[GeoPoint],
    ) -> Optional[str]:
        """Index a committed entity. Returns a warning string on failure.

        MUST NOT roll back: the entity and its audit record are already
        committed. The degraded flag is set for operator awareness.
        """
        if point is None:
            return None
        try:
            self._geo_index.put(kind.value, entity_id, point)
            return None
        except (OSError, RuntimeError) as e:
            self._index_degraded = True
            logger.error("Geo index update failed for %s %s: %s", kind.value, entity_id, e)
            return f"Geo index degraded: {e}; {entity_id} committed but not indexed"

    def _link_decision(self, event_id: str, decision_id: str) -> Optional[str]:
        """Link a committed decision onto its event. Returns a warning on failure.

        MUST NOT fail the operation: the decision and its audit record are
        already committed, and a caller retrying would record it twice.
        """
        try:
            self._workflow.link_decision(event_id, decision_id)
            return None
        except CopError as e:
            logger.error("Linking decision %s to event %s failed: %s", decision_id, event_id, e)
            return f"Event link failed: {e}; {decision_id} committed but not listed on {event_id}"

    def _index_remove(self, kind: EntityKind, entity_id: str) -> Optional[str]:
        try:
            self._geo_index.remove(kind.value, entity_id)
            return None
        except (OSError, RuntimeError) as e:
            self._index_degraded = True
            logger.error("Geo index removal failed for %s %s: %s", kind.value, entity_id, e)
            return f"Geo index degraded: {e}; {entity_id} deleted but still indexed"

    @staticmethod
    def _spatial_kind(kind: Union[EntityKind, str]) -> EntityKind:
        entity_kind = entity_kind_of(kind)
        if entity_kind == EntityKind.DECISION:
            raise ValidationError("kind", "decisions carry no location")
        return entity_kind

    def _visible(
        self, user: UserRecord, kind: EntityKind, ids: list[str],
    ) -> ServiceResult:
        entities = []
        for entity_id in ids:
            try:
                entity, _ = self._workflow.load(kind, entity_id)
            except NotFound:
                logger.warning("Geo index names missing %s %s", kind.value, entity_id)
                continue
            entities.append(entity)
        visible = self._gate.filter_readable(user, entities)
        id_field = "report_id" if kind == EntityKind.REPORT else "event_id"
        return ServiceResult(
            success=True,
            data={f"{id_field}s": [getattr(e, id_field) for e in visible]},
            value=visible,
        )

    @staticmethod
    def _ok(
        entity: Any,
        version: int,
        data: dict[str, Any],
        warning: Optional[str] = None,
    ) -> ServiceResult:
        data = {**data, "version": version}
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data, value=entity)
