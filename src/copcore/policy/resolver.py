"""Policy resolver — loads access_policy.json and fusion_params.json and
exposes every runtime policy decision as a typed method call.

No magic. No defaults. If a value is missing from the config, it fails
loud. Classification labels in config are parsed strictly: a typo here
must not become an UNCLASSIFIED cap.
"""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path
from typing import Any

from copcore.access.capabilities import Capability, CapabilityTable, RestrictedView
from copcore.fusion.config import FusionConfig, corroborating_pairs, curve_from_config
from copcore.models.classification import ClassificationLevel
from copcore.models.event import EventStatus
from copcore.models.report import ReportStatus
from copcore.models.user import IntelligenceType, UserRole


class PolicyResolver:
    """Loads and resolves access and fusion policy.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        table = resolver.capability_table()
        fusion = resolver.fusion_config()
    """

    def __init__(self, access: dict[str, Any], fusion: dict[str, Any]) -> None:
        self._access = access
        self._fusion = fusion
        self._validate_versions()
        # Parsed once; both are immutable.
        self._table = self._build_capability_table()
        self._fusion_config = self._build_fusion_config()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        """Load from the canonical config directory."""
        access = _load_json(config_dir / "access_policy.json")
        fusion = _load_json(config_dir / "fusion_params.json")
        return cls(access, fusion)

    def _validate_versions(self) -> None:
        if "version" not in self._access:
            raise ValueError("access_policy.json missing version")
        if "version" not in self._fusion:
            raise ValueError("fusion_params.json missing version")

    # ------------------------------------------------------------------
    # Access policy
    # ------------------------------------------------------------------

    def capability_table(self) -> CapabilityTable:
        """Return the process-wide role capability table."""
        return self._table

    def _build_capability_table(self) -> CapabilityTable:
        roles: dict[UserRole, set[Capability]] = {}
        for role_name, caps in self._access["roles"].items():
            roles[UserRole(role_name)] = {Capability(c) for c in caps}
        missing = set(UserRole) - set(roles)
        if missing:
            names = sorted(r.value for r in missing)
            raise ValueError(f"access_policy.json missing roles: {names}")

        specializations: dict[UserRole, IntelligenceType] = {}
        for role_name, intel_type in self._access["specializations"].items():
            role = UserRole(role_name)
            if Capability.SUBMIT_REPORT not in roles[role]:
                raise ValueError(
                    f"Specialization given for {role_name}, which cannot submit reports"
                )
            specializations[role] = IntelligenceType(intel_type)

        rv = self._access["restricted_view"]
        restricted = RestrictedView(
            max_classification=_strict_level(rv["max_classification"]),
            report_statuses=frozenset(ReportStatus(s).value for s in rv["report_statuses"]),
            event_statuses=frozenset(EventStatus(s).value for s in rv["event_statuses"]),
        )

        reveal = {
            Capability(c) for c in self._access["disclosure"]["reveal_reason_to"]
        }
        return CapabilityTable.build(roles, specializations, restricted, reveal)

    # ------------------------------------------------------------------
    # Fusion policy
    # ------------------------------------------------------------------

    def fusion_config(self) -> FusionConfig:
        """Return the deployment's default fusion configuration."""
        return self._fusion_config

    def _build_fusion_config(self) -> FusionConfig:
        f = self._fusion
        return FusionConfig(
            radius_m=float(f["radius_m"]),
            window=timedelta(hours=f["window_hours"]),
            corroborating=corroborating_pairs(f["corroborating_types"]),
            bonus_curve=curve_from_config(f["corroboration"]),
        )

    @property
    def versions(self) -> dict[str, str]:
        return {
            "access_policy": str(self._access["version"]),
            "fusion_params": str(self._fusion["version"]),
        }


def _strict_level(label: str) -> ClassificationLevel:
    try:
        return ClassificationLevel[label]
    except KeyError:
        raise ValueError(f"Unknown classification level in config: {label}") from None


def _load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file or raise with clear path."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)
