"""Persistence layer — versioned entity store and audit log."""

from copcore.persistence.audit_log import AuditKind, AuditLog, AuditRecord
from copcore.persistence.entity_store import EntityKind, EntityStore

__all__ = ["AuditKind", "AuditLog", "AuditRecord", "EntityKind", "EntityStore"]
