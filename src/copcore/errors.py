"""Error taxonomy for the COP core.

Engines raise these; CopService catches them at its boundary and
returns a failed ServiceResult carrying the error. Only
ConcurrentModification and CollaboratorUnavailable are retryable.
"""

from __future__ import annotations

import enum
from typing import Optional


class DenialReason(str, enum.Enum):
    """Why the access gate said no (or GRANTED when it did not)."""
    GRANTED = "GRANTED"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    INSUFFICIENT_CLEARANCE = "INSUFFICIENT_CLEARANCE"


class CopError(Exception):
    """Base class for every error a core operation may surface."""
    kind = "CopError"
    retryable = False


class AccessDenied(CopError):
    """Requester lacks the capability or the clearance.

    reason is None when the disclosure policy withholds the sub-reason
    from this requester.
    """
    kind = "AccessDenied"

    def __init__(self, reason: Optional[DenialReason], detail: str = "") -> None:
        self.reason = reason
        self.detail = detail
        label = reason.value if reason is not None else "withheld"
        msg = f"Access denied ({label})"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)

    def redacted(self) -> AccessDenied:
        """Same denial without the sub-reason or detail."""
        return AccessDenied(None)


class NotFound(CopError):
    kind = "NotFound"

    def __init__(self, entity_kind: str, entity_id: str) -> None:
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        super().__init__(f"{entity_kind} not found: {entity_id}")


class ValidationError(CopError):
    """Malformed or missing input. field names the offending input."""
    kind = "ValidationError"

    def __init__(self, field: str, rule: str) -> None:
        self.field = field
        self.rule = rule
        super().__init__(f"Invalid {field}: {rule}")


class InvalidStateTransition(CopError):
    kind = "InvalidStateTransition"

    def __init__(self, from_state: str, attempted: str) -> None:
        self.from_state = from_state
        self.attempted = attempted
        super().__init__(f"Illegal transition from {from_state} via {attempted}")


class ConcurrentModification(CopError):
    """Optimistic version mismatch. Re-read and reapply."""
    kind = "ConcurrentModification"
    retryable = True

    def __init__(
        self,
        entity_id: str,
        expected: Optional[int],
        actual: Optional[int],
    ) -> None:
        self.entity_id = entity_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Version conflict on {entity_id}: expected {expected}, found {actual}"
        )


class CollaboratorUnavailable(CopError):
    """A store or index failed in a way the core cannot classify."""
    kind = "CollaboratorUnavailable"
    retryable = True

    def __init__(self, collaborator: str, cause: BaseException) -> None:
        self.collaborator = collaborator
        self.cause = cause
        super().__init__(f"{collaborator} unavailable: {cause}")
