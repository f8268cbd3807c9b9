"""Identity — the user directory read by the access gate."""

from copcore.identity.directory import UserDirectory

__all__ = ["UserDirectory"]
