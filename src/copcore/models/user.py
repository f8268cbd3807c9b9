"""User roles, intelligence types, and the user record read by the core.

The identity collaborator owns users. The core only ever reads the
role, the clearance and the active flag.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from copcore.models.classification import ClassificationLevel


class IntelligenceType(str, enum.Enum):
    """Collection discipline of a report. Matches analyst specializations."""
    SOCMINT = "SOCMINT"
    SIGINT = "SIGINT"
    HUMINT = "HUMINT"


class UserRole(str, enum.Enum):
    """Fixed role set: commanding authority, three analysts, observer."""
    HQ = "HQ"
    ANALYST_SOCMINT = "ANALYST_SOCMINT"
    ANALYST_SIGINT = "ANALYST_SIGINT"
    ANALYST_HUMINT = "ANALYST_HUMINT"
    OBSERVER = "OBSERVER"

    @property
    def is_analyst(self) -> bool:
        return self in (
            UserRole.ANALYST_SOCMINT,
            UserRole.ANALYST_SIGINT,
            UserRole.ANALYST_HUMINT,
        )


@dataclass(frozen=True)
class UserRecord:
    """A principal as seen by the access gate."""
    user_id: str
    role: UserRole
    clearance: ClassificationLevel
    active: bool = True
    display_name: Optional[str] = None
