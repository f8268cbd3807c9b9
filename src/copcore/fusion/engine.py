"""Fusion engine — clusters approved reports into correlated events.

Pure computation. No side effects, no persistence, no audit records.
The service layer handles all of that; this engine only computes.

Linking rule (two reports are linked when all hold):
  - both carry a location
  - great-circle distance <= radius_m
  - |event_time difference| <= window
  - same intelligence type, or a configured corroborating pair

Clusters are the connected components of the link graph (single
linkage). Components do not depend on input order, so the same set of
reports always yields the same events. Reports without a location are
never linked and each becomes a single-source event.

Confidence per cluster:
  confidence = min(1.0, mean(member confidences) + bonus(n))
  bonus(1) = 0; bonus is made non-decreasing in n by taking the running
  maximum of the configured curve.

Event IDs are derived from a SHA-256 digest of the sorted member report
IDs, so re-fusing the same reports yields the same event IDs.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from copcore.errors import ValidationError
from copcore.fusion.config import FusionConfig, describe_curve
from copcore.geo.geodesy import haversine_m, spherical_centroid
from copcore.models.classification import highest
from copcore.models.event import Event, EventStatus
from copcore.models.geo import GeoPoint
from copcore.models.report import IntelligenceReport, ReportStatus

logger = logging.getLogger(__name__)

FUSED_EVENT_TYPE = "FUSED_INTELLIGENCE"
SINGLE_SOURCE_EVENT_TYPE = "SINGLE_SOURCE"


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def fused_event_id(report_ids: Iterable[str]) -> str:
    """Stable event ID for a set of member report IDs."""
    joined = "\n".join(sorted(set(report_ids)))
    return "EVT-" + hashlib.sha256(joined.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class Link:
    """A pair of reports that satisfied the linking rule."""
    first_id: str
    second_id: str
    distance_m: float
    time_delta_s: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "reports": [self.first_id, self.second_id],
            "distance_m": round(self.distance_m, 3),
            "time_delta_seconds": self.time_delta_s,
        }


class _DisjointSet:
    """Union-find over report IDs. Roots are the lexically smallest ID."""

    def __init__(self, ids: Iterable[str]) -> None:
        self._parent = {i: i for i in ids}

    def find(self, item: str) -> str:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return
        if rb < ra:
            ra, rb = rb, ra
        self._parent[rb] = ra

    def groups(self) -> dict[str, list[str]]:
        out: dict[str, list[str]] = {}
        for item in sorted(self._parent):
            out.setdefault(self.find(item), []).append(item)
        return out


class FusionEngine:
    """Deterministic spatial/temporal/topical fusion.

    Usage:
        engine = FusionEngine(resolver.fusion_config())
        events = engine.fuse(approved_reports)
        # events[i].fusion_metadata["confidence_trail"] explains the score
    """

    def __init__(self, default_config: FusionConfig) -> None:
        self._default_config = default_config

    @property
    def default_config(self) -> FusionConfig:
        return self._default_config

    # ------------------------------------------------------------------
    # Public: fusion
    # ------------------------------------------------------------------

    def fuse(
        self,
        reports: Sequence[IntelligenceReport],
        config: Optional[FusionConfig] = None,
        created_utc: Optional[datetime] = None,
    ) -> list[Event]:
        """Cluster reports and derive one PENDING event per cluster.

        Args:
            reports: APPROVED reports. Duplicates (same ID) count once.
            config: Overrides the default configuration for this run.
            created_utc: Stamped on every produced event. Left unset the
                output depends on nothing but the inputs.

        Returns:
            Events ordered by their lowest member report ID.

        Raises:
            ValidationError: If any report is not APPROVED.
        """
        cfg = config or self._default_config
        by_id = self._validate(reports)
        if not by_id:
            return []

        ids = sorted(by_id)
        components = _DisjointSet(ids)
        links: list[Link] = []
        for i, first_id in enumerate(ids):
            for second_id in ids[i + 1:]:
                link = self._link(by_id[first_id], by_id[second_id], cfg)
                if link is not None:
                    links.append(link)
                    components.union(first_id, second_id)

        links_by_root: dict[str, list[Link]] = {}
        for link in links:
            links_by_root.setdefault(components.find(link.first_id), []).append(link)

        events: list[Event] = []
        for root, member_ids in sorted(components.groups().items()):
            members = [by_id[m] for m in member_ids]
            events.append(self._build_event(
                members, links_by_root.get(root, []), cfg, created_utc,
            ))

        logger.info(
            "Fused %d report(s) into %d event(s) (%d multi-source)",
            len(ids), len(events),
            sum(1 for e in events if e.event_type == FUSED_EVENT_TYPE),
        )
        return events

    def confidence_trail(
        self,
        members: Sequence[IntelligenceReport],
        config: Optional[FusionConfig] = None,
    ) -> dict[str, Any]:
        """Explain how a cluster's confidence is computed."""
        cfg = config or self._default_config
        scores = [_clamp(r.confidence) for r in members]
        size = len(scores)
        mean = sum(scores) / size if size else 0.0
        bonus = self.bonus(size, cfg)
        raw = mean + bonus
        final = _clamp(raw)
        return {
            "member_scores": {r.report_id: _clamp(r.confidence) for r in members},
            "mean": mean,
            "cluster_size": size,
            "curve": describe_curve(cfg.bonus_curve),
            "bonus": bonus,
            "raw": raw,
            "final": final,
            "capped": raw > 1.0,
        }

    @staticmethod
    def bonus(cluster_size: int, config: FusionConfig) -> float:
        """Corroboration bonus, forced non-decreasing in cluster size."""
        best = 0.0
        for n in range(2, cluster_size + 1):
            best = max(best, _clamp(config.bonus_curve(n)))
        return best

    # ------------------------------------------------------------------
    # Public: correlation lookup
    # ------------------------------------------------------------------

    def correlated_reports(
        self,
        reports: Iterable[IntelligenceReport],
        center: GeoPoint,
        start: datetime,
        end: datetime,
        radius_m: Optional[float] = None,
    ) -> list[IntelligenceReport]:
        """Approved, located reports inside a radius and a time window.

        Both window edges and the radius are inclusive. Results are
        newest first, ties broken by report ID.
        """
        radius = self._default_config.radius_m if radius_m is None else radius_m
        if radius < 0:
            raise ValidationError("radius_m", "must be non-negative")
        if start.utcoffset() is None or end.utcoffset() is None:
            raise ValidationError("time_window", "must be timezone-aware")
        if end < start:
            raise ValidationError("time_window", "end precedes start")
        hits = [
            r for r in reports
            if r.status == ReportStatus.APPROVED
            and r.location is not None
            and start <= r.event_time <= end
            and haversine_m(center, r.location) <= radius
        ]
        hits.sort(key=lambda r: r.report_id)
        hits.sort(key=lambda r: r.event_time, reverse=True)
        return hits

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(
        reports: Sequence[IntelligenceReport],
    ) -> dict[str, IntelligenceReport]:
        by_id: dict[str, IntelligenceReport] = {}
        for r in reports:
            if r.status != ReportStatus.APPROVED:
                raise ValidationError(
                    "report_ids",
                    f"{r.report_id} is {r.status.value}; only APPROVED reports can be fused",
                )
            by_id[r.report_id] = r
        return by_id

    @staticmethod
    def _link(
        a: IntelligenceReport, b: IntelligenceReport, cfg: FusionConfig,
    ) -> Optional[Link]:
        if a.location is None or b.location is None:
            return None
        if not cfg.types_compatible(a.intel_type, b.intel_type):
            return None
        delta = abs((a.event_time - b.event_time).total_seconds())
        if delta > cfg.window.total_seconds():
            return None
        distance = haversine_m(a.location, b.location)
        if distance > cfg.radius_m:
            return None
        return Link(a.report_id, b.report_id, distance, delta)

    def _build_event(
        self,
        members: list[IntelligenceReport],
        links: list[Link],
        cfg: FusionConfig,
        created_utc: Optional[datetime],
    ) -> Event:
        member_ids = [r.report_id for r in members]
        located = [r.location for r in members if r.location is not None]
        times = [r.event_time for r in members]
        trail = self.confidence_trail(members, cfg)
        types = sorted({r.intel_type.value for r in members})
        n = len(members)

        return Event(
            event_id=fused_event_id(member_ids),
            event_type=FUSED_EVENT_TYPE if n > 1 else SINGLE_SOURCE_EVENT_TYPE,
            start_utc=min(times),
            end_utc=max(times),
            location=spherical_centroid(located) if located else None,
            description=(
                f"Fused from {n} report{'s' if n != 1 else ''}: "
                + ", ".join(r.title for r in members)
            ),
            confidence=trail["final"],
            classification=highest(r.classification for r in members),
            status=EventStatus.PENDING,
            source_report_ids=frozenset(member_ids),
            fusion_metadata={
                "title": f"Fused Intelligence: {' + '.join(types)} Correlation",
                "member_report_ids": member_ids,
                "intel_types": types,
                "rule": cfg.describe(),
                "links": [link.to_dict() for link in links],
                "confidence_trail": trail,
            },
            created_utc=created_utc,
        )
