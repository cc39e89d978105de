"""Declarative base and the column mixins shared by the ADMS tables.

Every timestamp is stored timezone-aware (Base.type_annotation_map), and
every application row is keyed by a UUID.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class UUIDMixin:
    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)


class TimestampMixin:
    """created_at / updated_at, filled by Python and by the database as a fallback."""

    created_at: Mapped[datetime] = mapped_column(default=utcnow, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
    )


class SoftDeleteMixin:
    """Rows are never removed; deleted_at marks them as deleted.

    Deleted matters, documents and revisions are hidden from listings but
    still exist as audit subjects (deleting and restoring are audited).
    """

    deleted_at: Mapped[datetime | None] = mapped_column(default=None)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ActivityMixin(UUIDMixin):
    """A row of one of the fixed activity vocabularies (CREATED, MOVED, ...)."""

    activity: Mapped[str] = mapped_column(String(50), unique=True)


def generate_repr(*attrs: str) -> Any:
    """Build a __repr__ showing the given attributes.

    Example:
        __repr__ = generate_repr("id", "description")
    """

    def __repr__(self: Any) -> str:
        shown = ", ".join(f"{attr}={getattr(self, attr)!r}" for attr in attrs)
        return f"{type(self).__name__}({shown})"

    return __repr__
