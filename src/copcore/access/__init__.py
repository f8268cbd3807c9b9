"""Access control — capability table and the two-dimensional access gate."""

from copcore.access.capabilities import Capability, CapabilityTable, RestrictedView
from copcore.access.gate import AccessDecision, AccessGate

__all__ = [
    "AccessDecision",
    "AccessGate",
    "Capability",
    "CapabilityTable",
    "RestrictedView",
]
