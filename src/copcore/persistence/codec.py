"""JSON codec for entity records.

Persistence mapping lives here and only here; entity types carry no
storage concerns. Timestamps are ISO-8601 strings, enums their values,
classification levels their names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from copcore.models.classification import ClassificationLevel
from copcore.models.decision import ApprovalStatus, Decision, DecisionType
from copcore.models.event import Event, EventStatus
from copcore.models.geo import GeoPoint
from copcore.models.report import IntelligenceReport, ReportStatus
from copcore.models.user import IntelligenceType


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _point(p: Optional[GeoPoint]) -> Optional[dict[str, float]]:
    if p is None:
        return None
    return {"latitude": p.latitude, "longitude": p.longitude}


def _parse_point(data: Optional[dict[str, float]]) -> Optional[GeoPoint]:
    if data is None:
        return None
    return GeoPoint(latitude=data["latitude"], longitude=data["longitude"])


# ----------------------------------------------------------------------
# Reports
# ----------------------------------------------------------------------

def report_to_dict(r: IntelligenceReport) -> dict[str, Any]:
    return {
        "report_id": r.report_id,
        "title": r.title,
        "body": r.body,
        "intel_type": r.intel_type.value,
        "classification": r.classification.name,
        "submitter_id": r.submitter_id,
        "event_time": _ts(r.event_time),
        "location": _point(r.location),
        "confidence": r.confidence,
        "status": r.status.value,
        "reviewer_id": r.reviewer_id,
        "reviewed_utc": _ts(r.reviewed_utc),
        "review_comments": r.review_comments,
        "metadata": dict(r.metadata),
        "created_utc": _ts(r.created_utc),
        "updated_utc": _ts(r.updated_utc),
    }


def report_from_dict(data: dict[str, Any]) -> IntelligenceReport:
    return IntelligenceReport(
        report_id=data["report_id"],
        title=data["title"],
        body=data["body"],
        intel_type=IntelligenceType(data["intel_type"]),
        classification=ClassificationLevel[data["classification"]],
        submitter_id=data["submitter_id"],
        event_time=_parse_ts(data["event_time"]),
        location=_parse_point(data.get("location")),
        confidence=data.get("confidence", 0.5),
        status=ReportStatus(data["status"]),
        reviewer_id=data.get("reviewer_id"),
        reviewed_utc=_parse_ts(data.get("reviewed_utc")),
        review_comments=data.get("review_comments"),
        metadata=dict(data.get("metadata", {})),
        created_utc=_parse_ts(data.get("created_utc")),
        updated_utc=_parse_ts(data.get("updated_utc")),
    )


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

def event_to_dict(e: Event) -> dict[str, Any]:
    return {
        "event_id": e.event_id,
        "event_type": e.event_type,
        "start_utc": _ts(e.start_utc),
        "end_utc": _ts(e.end_utc),
        "location": _point(e.location),
        "description": e.description,
        "confidence": e.confidence,
        "classification": e.classification.name,
        "status": e.status.value,
        "source_report_ids": sorted(e.source_report_ids),
        "decision_ids": list(e.decision_ids),
        "fusion_metadata": e.fusion_metadata,
        "created_by": e.created_by,
        "reviewer_id": e.reviewer_id,
        "reviewed_utc": _ts(e.reviewed_utc),
        "created_utc": _ts(e.created_utc),
    }


def event_from_dict(data: dict[str, Any]) -> Event:
    return Event(
        event_id=data["event_id"],
        event_type=data["event_type"],
        start_utc=_parse_ts(data["start_utc"]),
        end_utc=_parse_ts(data.get("end_utc")),
        location=_parse_point(data.get("location")),
        description=data["description"],
        confidence=data["confidence"],
        classification=ClassificationLevel[data["classification"]],
        status=EventStatus(data["status"]),
        source_report_ids=frozenset(data.get("source_report_ids", [])),
        decision_ids=tuple(data.get("decision_ids", [])),
        fusion_metadata=dict(data.get("fusion_metadata", {})),
        created_by=data.get("created_by"),
        reviewer_id=data.get("reviewer_id"),
        reviewed_utc=_parse_ts(data.get("reviewed_utc")),
        created_utc=_parse_ts(data.get("created_utc")),
    )


# ----------------------------------------------------------------------
# Decisions
# ----------------------------------------------------------------------

def decision_to_dict(d: Decision) -> dict[str, Any]:
    return {
        "decision_id": d.decision_id,
        "author_id": d.author_id,
        "decision_type": d.decision_type.value,
        "approval_status": d.approval_status.value,
        "event_id": d.event_id,
        "report_id": d.report_id,
        "priority_level": d.priority_level,
        "reasoning": d.reasoning,
        "notes": d.notes,
        "requires_action": d.requires_action,
        "action_taken": d.action_taken,
        "decision_utc": _ts(d.decision_utc),
        "updated_utc": _ts(d.updated_utc),
    }


def decision_from_dict(data: dict[str, Any]) -> Decision:
    return Decision(
        decision_id=data["decision_id"],
        author_id=data["author_id"],
        decision_type=DecisionType(data["decision_type"]),
        approval_status=ApprovalStatus(data["approval_status"]),
        event_id=data.get("event_id"),
        report_id=data.get("report_id"),
        priority_level=data.get("priority_level", 3),
        reasoning=data.get("reasoning", ""),
        notes=data.get("notes", ""),
        requires_action=data.get("requires_action", False),
        action_taken=data.get("action_taken"),
        decision_utc=_parse_ts(data.get("decision_utc")),
        updated_utc=_parse_ts(data.get("updated_utc")),
    )
