"""Matter model: the top-level container documents are filed under."""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adms.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, generate_repr

if TYPE_CHECKING:
    from adms.models.document import Document


class Matter(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """Represents a legal matter.

    Attributes:
        id: Primary key UUID
        description: Unique human-readable matter name
        is_archived: Whether the matter has been archived
        documents: Documents currently filed under this matter
    """

    __tablename__ = "matters"

    description: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    is_archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    documents: Mapped[list["Document"]] = relationship(
        "Document",
        back_populates="matter",
    )

    __table_args__ = (Index("idx_matters_description", "description"),)

    __repr__ = generate_repr("id", "description")
