"""User directory — reference implementation of the IdentityStore collaborator.

The directory is the source of truth for who may act on the COP. The
core reads three things from a user record: the role, the clearance
and the active flag. Authentication and session handling live outside
the core; by the time a request reaches the service, the requester has
already been reduced to a user ID.

Invariants enforced:
- User IDs are canonical (stripped, never blank).
- Deactivated users stay in the directory so that audit records keep
  resolving, but the access gate denies every operation they attempt.
"""

from __future__ import annotations

import dataclasses
import logging

from copcore.errors import NotFound
from copcore.models.classification import ClassificationLevel
from copcore.models.user import UserRecord, UserRole

logger = logging.getLogger(__name__)


class UserDirectory:
    """In-memory registry of users.

    Thread-safety: this class is not thread-safe. The caller must
    synchronise access if used from multiple threads.
    """

    def __init__(self) -> None:
        self._users: dict[str, UserRecord] = {}

    def register(self, user: UserRecord) -> UserRecord:
        """Register a new user or replace an existing one.

        Raises ValueError if:
        - user_id is blank/empty
        - role or clearance is not one of the fixed enums
        """
        canonical_id = user.user_id.strip()
        if not canonical_id:
            raise ValueError("Cannot register user with blank ID")
        if not isinstance(user.role, UserRole):
            raise ValueError(f"Unknown role: {user.role!r}")
        if not isinstance(user.clearance, ClassificationLevel):
            raise ValueError(f"Unknown clearance: {user.clearance!r}")
        if canonical_id != user.user_id:
            user = dataclasses.replace(user, user_id=canonical_id)
        self._users[canonical_id] = user
        logger.info(
            "Registered user %s as %s (%s)",
            canonical_id, user.role.value, user.clearance.name,
        )
        return user

    def lookup_user(self, user_id: str) -> UserRecord:
        """Return the user record or raise NotFound."""
        user = self._users.get(user_id.strip())
        if user is None:
            raise NotFound("user", user_id)
        return user

    def deactivate(self, user_id: str) -> UserRecord:
        user = dataclasses.replace(self.lookup_user(user_id), active=False)
        self._users[user.user_id] = user
        logger.info("Deactivated user %s", user.user_id)
        return user

    def all_users(self) -> list[UserRecord]:
        return [self._users[k] for k in sorted(self._users)]

    @property
    def count(self) -> int:
        return len(self._users)
