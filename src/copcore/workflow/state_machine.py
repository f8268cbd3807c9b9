"""Transition tables for reports, events and decisions.

Each table is total: any (state, action) pair not listed is illegal and
raises InvalidStateTransition. Tables are built once at import and are
read-only afterwards.

Report review (action-driven):
    PENDING            --APPROVE/REJECT/REQUEST_INFO/START_REVIEW-->
    UNDER_REVIEW       --APPROVE/REJECT/REOPEN-->
    REQUIRES_MORE_INFO --APPROVE/REJECT/REOPEN-->
    APPROVED, REJECTED terminal

Event status (target-driven; the action is the target status):
    PENDING/UNDER_REVIEW/REQUIRES_MORE_INFO --> each other, APPROVED,
    REJECTED, ARCHIVED
    APPROVED --> ARCHIVED
    REJECTED, ARCHIVED terminal

Decision approval (target-driven): any non-final status may move to any
other status; APPROVED and REJECTED are final.
"""

from __future__ import annotations

import enum
from types import MappingProxyType
from typing import Generic, Mapping, TypeVar

from copcore.errors import InvalidStateTransition
from copcore.models.decision import ApprovalStatus
from copcore.models.event import EventStatus
from copcore.models.report import ReportStatus, ReviewAction

S = TypeVar("S", bound=enum.Enum)
A = TypeVar("A", bound=enum.Enum)


class TransitionTable(Generic[S, A]):
    """Immutable (state, action) -> state mapping."""

    def __init__(self, name: str, transitions: dict[S, dict[A, S]]) -> None:
        self._name = name
        self._table: Mapping[S, Mapping[A, S]] = MappingProxyType(
            {state: MappingProxyType(dict(moves)) for state, moves in transitions.items()}
        )

    @property
    def name(self) -> str:
        return self._name

    def next_state(self, current: S, action: A) -> S:
        """Resolve the target state or raise InvalidStateTransition."""
        target = self._table.get(current, {}).get(action)
        if target is None:
            raise InvalidStateTransition(current.value, action.value)
        return target

    def is_legal(self, current: S, action: A) -> bool:
        return action in self._table.get(current, {})

    def legal_actions(self, current: S) -> frozenset[A]:
        return frozenset(self._table.get(current, {}))

    def is_terminal(self, state: S) -> bool:
        return not self._table.get(state)


def _targets(*states: S) -> dict[S, S]:
    """Target-driven moves: the action is the target status."""
    return {s: s for s in states}


REPORT_TRANSITIONS: TransitionTable[ReportStatus, ReviewAction] = TransitionTable(
    "report",
    {
        ReportStatus.PENDING: {
            ReviewAction.APPROVE: ReportStatus.APPROVED,
            ReviewAction.REJECT: ReportStatus.REJECTED,
            ReviewAction.REQUEST_INFO: ReportStatus.REQUIRES_MORE_INFO,
            ReviewAction.START_REVIEW: ReportStatus.UNDER_REVIEW,
        },
        ReportStatus.UNDER_REVIEW: {
            ReviewAction.APPROVE: ReportStatus.APPROVED,
            ReviewAction.REJECT: ReportStatus.REJECTED,
            ReviewAction.REOPEN: ReportStatus.PENDING,
        },
        ReportStatus.REQUIRES_MORE_INFO: {
            ReviewAction.APPROVE: ReportStatus.APPROVED,
            ReviewAction.REJECT: ReportStatus.REJECTED,
            ReviewAction.REOPEN: ReportStatus.PENDING,
        },
        ReportStatus.APPROVED: {},
        ReportStatus.REJECTED: {},
    },
)

EVENT_TRANSITIONS: TransitionTable[EventStatus, EventStatus] = TransitionTable(
    "event",
    {
        EventStatus.PENDING: _targets(
            EventStatus.UNDER_REVIEW, EventStatus.REQUIRES_MORE_INFO,
            EventStatus.APPROVED, EventStatus.REJECTED, EventStatus.ARCHIVED,
        ),
        EventStatus.UNDER_REVIEW: _targets(
            EventStatus.PENDING, EventStatus.REQUIRES_MORE_INFO,
            EventStatus.APPROVED, EventStatus.REJECTED, EventStatus.ARCHIVED,
        ),
        EventStatus.REQUIRES_MORE_INFO: _targets(
            EventStatus.PENDING, EventStatus.UNDER_REVIEW,
            EventStatus.APPROVED, EventStatus.REJECTED, EventStatus.ARCHIVED,
        ),
        EventStatus.APPROVED: _targets(EventStatus.ARCHIVED),
        EventStatus.REJECTED: {},
        EventStatus.ARCHIVED: {},
    },
)

DECISION_TRANSITIONS: TransitionTable[ApprovalStatus, ApprovalStatus] = TransitionTable(
    "decision",
    {
        status: (
            {} if status.is_final
            else _targets(*(s for s in ApprovalStatus if s != status))
        )
        for status in ApprovalStatus
    },
)
