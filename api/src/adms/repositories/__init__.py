"""Data access: the generic per-model repository and the audit trail store."""

from adms.repositories.audit import (
    AuditDirection,
    AuditKind,
    AuditTrailRepository,
    TransferEvent,
)
from adms.repositories.base import BaseRepository, EntityExistenceValidator

__all__ = [
    "AuditDirection",
    "AuditKind",
    "AuditTrailRepository",
    "BaseRepository",
    "EntityExistenceValidator",
    "TransferEvent",
]
