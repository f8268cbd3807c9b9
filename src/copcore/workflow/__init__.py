"""Workflow — transition tables and the engine that applies them."""

from copcore.workflow.engine import WorkflowEngine, entity_kind_of, utc_now
from copcore.workflow.state_machine import (
    DECISION_TRANSITIONS,
    EVENT_TRANSITIONS,
    REPORT_TRANSITIONS,
    TransitionTable,
)

__all__ = [
    "DECISION_TRANSITIONS",
    "EVENT_TRANSITIONS",
    "REPORT_TRANSITIONS",
    "TransitionTable",
    "WorkflowEngine",
    "entity_kind_of",
    "utc_now",
]
