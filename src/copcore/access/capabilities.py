"""Role capability table.

Loaded once from access_policy.json by the PolicyResolver and never
mutated afterwards: every mapping is read-only and every set frozen.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from copcore.models.classification import ClassificationLevel
from copcore.models.user import IntelligenceType, UserRole


class Capability(str, enum.Enum):
    SUBMIT_REPORT = "SUBMIT_REPORT"
    REVIEW_REPORT = "REVIEW_REPORT"
    TRANSITION_EVENT = "TRANSITION_EVENT"
    CREATE_DECISION = "CREATE_DECISION"
    VIEW_ALL_INTEL = "VIEW_ALL_INTEL"
    VIEW_APPROVED_INTEL = "VIEW_APPROVED_INTEL"
    RUN_FUSION = "RUN_FUSION"
    READ_ONLY = "READ_ONLY"


@dataclass(frozen=True)
class RestrictedView:
    """What a role without VIEW_ALL_INTEL may still read."""
    max_classification: ClassificationLevel
    report_statuses: frozenset[str]
    event_statuses: frozenset[str]


@dataclass(frozen=True)
class CapabilityTable:
    """Immutable role → capability configuration."""
    roles: Mapping[UserRole, frozenset[Capability]]
    specializations: Mapping[UserRole, IntelligenceType]
    restricted_view: RestrictedView
    reveal_reason_to: frozenset[Capability]

    @classmethod
    def build(
        cls,
        roles: dict[UserRole, set[Capability]],
        specializations: dict[UserRole, IntelligenceType],
        restricted_view: RestrictedView,
        reveal_reason_to: set[Capability],
    ) -> CapabilityTable:
        return cls(
            roles=MappingProxyType({r: frozenset(c) for r, c in roles.items()}),
            specializations=MappingProxyType(dict(specializations)),
            restricted_view=restricted_view,
            reveal_reason_to=frozenset(reveal_reason_to),
        )

    def capabilities_of(self, role: UserRole) -> frozenset[Capability]:
        return self.roles.get(role, frozenset())

    def has(self, role: UserRole, capability: Capability) -> bool:
        return capability in self.capabilities_of(role)

    def specialization_of(self, role: UserRole) -> Optional[IntelligenceType]:
        return self.specializations.get(role)

    def reveals_reason_to(self, role: UserRole) -> bool:
        """Whether holders of this role may see why access was denied."""
        return bool(self.capabilities_of(role) & self.reveal_reason_to)
