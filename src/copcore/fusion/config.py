"""Fusion tuning parameters and corroboration bonus curves.

The bonus curve is pluggable. Whatever curve is used, the engine guarantees
the bonus is non-decreasing in cluster size and the final confidence
never exceeds 1.0.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, ClassVar, Iterable

from copcore.models.user import IntelligenceType

BonusCurve = Callable[[int], float]


@dataclass(frozen=True)
class ExponentialBonus:
    """bonus(n) = max_bonus * (1 - exp(-rate * (n - 1)))."""
    max_bonus: float = 0.3
    rate: float = 0.5
    name: ClassVar[str] = "exponential"

    def __post_init__(self) -> None:
        if not (0.0 <= self.max_bonus <= 1.0):
            raise ValueError(f"max_bonus must be in [0, 1], got {self.max_bonus}")
        if self.rate <= 0.0:
            raise ValueError(f"rate must be positive, got {self.rate}")

    def __call__(self, cluster_size: int) -> float:
        if cluster_size <= 1:
            return 0.0
        return self.max_bonus * (1.0 - math.exp(-self.rate * (cluster_size - 1)))

    def describe(self) -> dict[str, Any]:
        return {"curve": self.name, "max_bonus": self.max_bonus, "rate": self.rate}


@dataclass(frozen=True)
class LinearBonus:
    """bonus(n) = min(max_bonus, step * (n - 1))."""
    max_bonus: float = 0.3
    step: float = 0.1
    name: ClassVar[str] = "linear"

    def __post_init__(self) -> None:
        if not (0.0 <= self.max_bonus <= 1.0):
            raise ValueError(f"max_bonus must be in [0, 1], got {self.max_bonus}")
        if self.step < 0.0:
            raise ValueError(f"step must be non-negative, got {self.step}")

    def __call__(self, cluster_size: int) -> float:
        if cluster_size <= 1:
            return 0.0
        return min(self.max_bonus, self.step * (cluster_size - 1))

    def describe(self) -> dict[str, Any]:
        return {"curve": self.name, "max_bonus": self.max_bonus, "step": self.step}


def curve_from_config(data: dict[str, Any]) -> BonusCurve:
    """Build a bonus curve from the "corroboration" config block."""
    kind = data["curve"]
    if kind == ExponentialBonus.name:
        return ExponentialBonus(max_bonus=data["max_bonus"], rate=data["rate"])
    if kind == LinearBonus.name:
        return LinearBonus(max_bonus=data["max_bonus"], step=data["step"])
    raise ValueError(f"Unknown corroboration curve: {kind}")


def describe_curve(curve: BonusCurve) -> dict[str, Any]:
    describe = getattr(curve, "describe", None)
    if callable(describe):
        return describe()
    return {"curve": getattr(curve, "__name__", repr(curve))}


def corroborating_pairs(
    pairs: Iterable[Iterable[str]],
) -> frozenset[frozenset[IntelligenceType]]:
    """Normalise pair lists like [["SIGINT", "HUMINT"]] to frozensets."""
    result = set()
    for pair in pairs:
        members = frozenset(IntelligenceType(t) for t in pair)
        if len(members) != 2:
            raise ValueError(f"Corroborating pair must name two distinct types: {pair}")
        result.add(members)
    return frozenset(result)


@dataclass(frozen=True)
class FusionConfig:
    """Clustering radius/window, type compatibility and bonus curve."""
    radius_m: float = 5000.0
    window: timedelta = timedelta(hours=24)
    corroborating: frozenset[frozenset[IntelligenceType]] = frozenset()
    bonus_curve: BonusCurve = field(default_factory=ExponentialBonus)

    def __post_init__(self) -> None:
        if self.radius_m < 0:
            raise ValueError(f"radius_m must be non-negative, got {self.radius_m}")
        if self.window < timedelta(0):
            raise ValueError(f"window must be non-negative, got {self.window}")

    def types_compatible(self, a: IntelligenceType, b: IntelligenceType) -> bool:
        return a == b or frozenset((a, b)) in self.corroborating

    def describe(self) -> dict[str, Any]:
        """Rule summary stored in each fused event's metadata."""
        return {
            "radius_m": self.radius_m,
            "window_seconds": self.window.total_seconds(),
            "compatibility": {
                "rule": "same_type_or_corroborating_pair",
                "corroborating_pairs": sorted(
                    sorted(t.value for t in pair) for pair in self.corroborating
                ),
            },
            "bonus": describe_curve(self.bonus_curve),
        }
