"""Document and revision models."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adms.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, generate_repr

if TYPE_CHECKING:
    from adms.models.matter import Matter


class Document(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """A file filed under a matter.

    Attributes:
        id: Primary key UUID
        matter_id: Matter the document currently belongs to
        file_name: File name without extension
        extension: File extension without the leading dot
        is_checked_out: Whether a user has the document checked out
        revisions: Saved revisions, oldest first
    """

    __tablename__ = "documents"

    matter_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matters.id", ondelete="CASCADE"),
        nullable=False,
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    extension: Mapped[str] = mapped_column(String(16), nullable=False)
    is_checked_out: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    matter: Mapped["Matter"] = relationship("Matter", back_populates="documents")
    revisions: Mapped[list["Revision"]] = relationship(
        "Revision",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="Revision.revision_number",
    )

    __table_args__ = (Index("idx_documents_matter_id", "matter_id"),)

    __repr__ = generate_repr("id", "file_name", "matter_id")


class Revision(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    """One saved version of a document."""

    __tablename__ = "revisions"

    document_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False)

    document: Mapped[Document] = relationship("Document", back_populates="revisions")

    __table_args__ = (
        Index("idx_revisions_document_number", "document_id", "revision_number", unique=True),
    )

    __repr__ = generate_repr("id", "document_id", "revision_number")
