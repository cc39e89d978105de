"""Audit trail records.

One append-only table per audited subject, each row saying "user U performed
activity A on subject S at time T". Document transfers between matters are
recorded twice, once from the origin matter's point of view (From) and once
from the destination's (To); the pair shares a transfer_id.

Activity and user relationships are eagerly joined: rows are always read
together with the activity name and actor name they are displayed with.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from adms.models.activity import (
    DocumentActivity,
    MatterActivity,
    MatterDocumentActivity,
    RevisionActivity,
)
from adms.models.base import Base, UUIDMixin, generate_repr, utcnow

if TYPE_CHECKING:
    from adms.models.document import Document, Revision
    from adms.models.matter import Matter
    from adms.models.user import User


class ActivityUserMixin(UUIDMixin):
    """Columns shared by every audit record: the actor and the timestamp."""

    @declared_attr
    def user_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(ForeignKey("users.id"), nullable=False)

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    @declared_attr
    def user(cls) -> Mapped["User"]:
        return relationship("User", lazy="joined")

    @property
    def user_name(self) -> str:
        return self.user.name


class MatterActivityUser(Base, ActivityUserMixin):
    """Activity performed by a user on a matter."""

    __tablename__ = "matter_activity_users"

    matter_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("matters.id"), nullable=False)
    matter_activity_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("matter_activities.id"), nullable=False
    )

    matter: Mapped["Matter"] = relationship("Matter")
    matter_activity: Mapped[MatterActivity] = relationship(MatterActivity, lazy="joined")

    __table_args__ = (
        Index(
            "idx_matter_activity_users_key",
            "matter_id", "matter_activity_id", "user_id", "created_at",
        ),
    )

    @property
    def activity(self) -> str:
        return self.matter_activity.activity

    __repr__ = generate_repr("id", "matter_id", "matter_activity_id", "user_id", "created_at")


class DocumentActivityUser(Base, ActivityUserMixin):
    """Activity performed by a user on a document."""

    __tablename__ = "document_activity_users"

    document_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("documents.id"), nullable=False)
    document_activity_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("document_activities.id"), nullable=False
    )

    document: Mapped["Document"] = relationship("Document")
    document_activity: Mapped[DocumentActivity] = relationship(DocumentActivity, lazy="joined")

    __table_args__ = (
        Index(
            "idx_document_activity_users_key",
            "document_id", "document_activity_id", "user_id", "created_at",
        ),
    )

    @property
    def activity(self) -> str:
        return self.document_activity.activity

    __repr__ = generate_repr("id", "document_id", "document_activity_id", "user_id", "created_at")


class RevisionActivityUser(Base, ActivityUserMixin):
    """Activity performed by a user on a revision."""

    __tablename__ = "revision_activity_users"

    revision_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("revisions.id"), nullable=False)
    revision_activity_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("revision_activities.id"), nullable=False
    )

    revision: Mapped["Revision"] = relationship("Revision")
    revision_activity: Mapped[RevisionActivity] = relationship(RevisionActivity, lazy="joined")

    __table_args__ = (
        Index(
            "idx_revision_activity_users_key",
            "revision_id", "revision_activity_id", "user_id", "created_at",
        ),
    )

    @property
    def activity(self) -> str:
        return self.revision_activity.activity

    __repr__ = generate_repr("id", "revision_id", "revision_activity_id", "user_id", "created_at")


class TransferRecordMixin(ActivityUserMixin):
    """Columns of one side of a document transfer between matters.

    matter_id is the origin matter on From records and the destination
    matter on To records.
    """

    @declared_attr
    def transfer_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(nullable=False, index=True)

    @declared_attr
    def matter_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(ForeignKey("matters.id"), nullable=False)

    @declared_attr
    def document_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(ForeignKey("documents.id"), nullable=False)

    @declared_attr
    def matter_document_activity_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(ForeignKey("matter_document_activities.id"), nullable=False)

    @declared_attr
    def matter(cls) -> Mapped["Matter"]:
        return relationship("Matter")

    @declared_attr
    def document(cls) -> Mapped["Document"]:
        return relationship("Document")

    @declared_attr
    def matter_document_activity(cls) -> Mapped[MatterDocumentActivity]:
        return relationship(MatterDocumentActivity, lazy="joined")

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return (
            Index(
                f"idx_{cls.__tablename__}_key",
                "matter_id", "matter_document_activity_id", "user_id", "created_at",
            ),
        )

    @property
    def activity(self) -> str:
        return self.matter_document_activity.activity


class MatterDocumentActivityUserFrom(Base, TransferRecordMixin):
    """Transfer as seen from the matter the document left."""

    __tablename__ = "matter_document_activity_users_from"

    __repr__ = generate_repr("id", "transfer_id", "matter_id", "document_id", "created_at")


class MatterDocumentActivityUserTo(Base, TransferRecordMixin):
    """Transfer as seen from the matter the document arrived in."""

    __tablename__ = "matter_document_activity_users_to"

    __repr__ = generate_repr("id", "transfer_id", "matter_id", "document_id", "created_at")
