"""Fusion — configuration, bonus curves and the clustering engine."""

from copcore.fusion.config import (
    BonusCurve,
    ExponentialBonus,
    FusionConfig,
    LinearBonus,
)
from copcore.fusion.engine import (
    FUSED_EVENT_TYPE,
    SINGLE_SOURCE_EVENT_TYPE,
    FusionEngine,
    fused_event_id,
)

__all__ = [
    "BonusCurve",
    "ExponentialBonus",
    "FUSED_EVENT_TYPE",
    "FusionConfig",
    "FusionEngine",
    "LinearBonus",
    "SINGLE_SOURCE_EVENT_TYPE",
    "fused_event_id",
]
