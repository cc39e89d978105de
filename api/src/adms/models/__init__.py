"""Database models."""

from adms.models.activity import (
    DocumentActivity,
    DocumentActivityType,
    MatterActivity,
    MatterActivityType,
    MatterDocumentActivity,
    MatterDocumentActivityType,
    RevisionActivity,
    RevisionActivityType,
)
from adms.models.audit import (
    DocumentActivityUser,
    MatterActivityUser,
    MatterDocumentActivityUserFrom,
    MatterDocumentActivityUserTo,
    RevisionActivityUser,
)
from adms.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin
from adms.models.document import Document, Revision
from adms.models.matter import Matter
from adms.models.user import User

__all__ = [
    "Base",
    "SoftDeleteMixin",
    "TimestampMixin",
    "UUIDMixin",
    "Document",
    "DocumentActivity",
    "DocumentActivityType",
    "DocumentActivityUser",
    "Matter",
    "MatterActivity",
    "MatterActivityType",
    "MatterActivityUser",
    "MatterDocumentActivity",
    "MatterDocumentActivityType",
    "MatterDocumentActivityUserFrom",
    "MatterDocumentActivityUserTo",
    "Revision",
    "RevisionActivity",
    "RevisionActivityType",
    "RevisionActivityUser",
    "User",
]
