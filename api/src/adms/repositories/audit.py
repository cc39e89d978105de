"""Audit trail store.

Writes and reads the append-only activity records of matters, documents and
revisions, and the mirrored From/To records of document transfers between
matters. Reads go through the query engine, so every audit listing can be
sorted, paged and shaped by the client.
"""

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adms.core.errors import InvalidAuditDirectionError, NotFoundError, PersistenceError
from adms.core.logging import get_logger
from adms.core.tracing import trace_database
from adms.models.activity import (
    DocumentActivity,
    MatterActivity,
    MatterDocumentActivity,
    RevisionActivity,
)
from adms.models.audit import (
    DocumentActivityUser,
    MatterActivityUser,
    MatterDocumentActivityUserFrom,
    MatterDocumentActivityUserTo,
    RevisionActivityUser,
)
from adms.models.base import Base, utcnow
from adms.models.document import Document, Revision
from adms.models.matter import Matter
from adms.models.user import User
from adms.query.mapping import FieldMapping, FieldMappingRegistry
from adms.query.pagination import Page, ResourceParameters
from adms.query.pipeline import ShapedPage, fetch_shaped_page
from adms.query.registrations import get_registry
from adms.query.shaping import resolve_fields
from adms.query.sorting import OrderKey, compile_sort
from adms.repositories.base import BaseRepository, EntityExistenceValidator
from adms.schemas.audit import (
    DocumentActivityUserDto,
    MatterActivityUserDto,
    MatterDocumentActivityUserDto,
    RevisionActivityUserDto,
)

logger = get_logger(__name__)

# Oldest first; id makes the order total when timestamps collide.
DEFAULT_AUDIT_ORDER = (OrderKey("created_at", False), OrderKey("id", False))


# ============================================================================
# AUDIT KINDS
# ============================================================================


@dataclass(frozen=True)
class AuditDescriptor:
    """Everything the store needs to know about one audit table.

    Attributes:
        record_model: ORM model of the audit table
        subject_model: Model the records are listed by
        subject_column: Column of record_model pointing at subject_model
        activity_model: Activity vocabulary table
        activity_column: Column of record_model pointing at activity_model
        activity_relationship: Relationship of record_model loading the activity row
        dto_type: DTO the records are served as
    """

    record_model: type[Base]
    subject_model: type[Base]
    subject_column: str
    activity_model: type[Base]
    activity_column: str
    activity_relationship: str
    dto_type: type[BaseModel]


class AuditKind(Enum):
    MATTER = AuditDescriptor(
        MatterActivityUser, Matter, "matter_id",
        MatterActivity, "matter_activity_id", "matter_activity",
        MatterActivityUserDto,
    )
    DOCUMENT = AuditDescriptor(
        DocumentActivityUser, Document, "document_id",
        DocumentActivity, "document_activity_id", "document_activity",
        DocumentActivityUserDto,
    )
    REVISION = AuditDescriptor(
        RevisionActivityUser, Revision, "revision_id",
        RevisionActivity, "revision_activity_id", "revision_activity",
        RevisionActivityUserDto,
    )
    # Transfer records listed by document: the whole move/copy history of one document.
    TRANSFER_FROM = AuditDescriptor(
        MatterDocumentActivityUserFrom, Document, "document_id",
        MatterDocumentActivity, "matter_document_activity_id", "matter_document_activity",
        MatterDocumentActivityUserDto,
    )
    TRANSFER_TO = AuditDescriptor(
        MatterDocumentActivityUserTo, Document, "document_id",
        MatterDocumentActivity, "matter_document_activity_id", "matter_document_activity",
        MatterDocumentActivityUserDto,
    )
    # The same records listed by matter: From rows are a matter's outgoing
    # transfers, To rows its incoming ones.
    MATTER_TRANSFER_FROM = AuditDescriptor(
        MatterDocumentActivityUserFrom, Matter, "matter_id",
        MatterDocumentActivity, "matter_document_activity_id", "matter_document_activity",
        MatterDocumentActivityUserDto,
    )
    MATTER_TRANSFER_TO = AuditDescriptor(
        MatterDocumentActivityUserTo, Matter, "matter_id",
        MatterDocumentActivity, "matter_document_activity_id", "matter_document_activity",
        MatterDocumentActivityUserDto,
    )

    @property
    def descriptor(self) -> AuditDescriptor:
        return self.value

    @property
    def is_transfer(self) -> bool:
        return self.descriptor.activity_model is MatterDocumentActivity


class AuditDirection(str, Enum):
    """Which side of a document transfer to read."""

    FROM = "from"
    TO = "to"

    @classmethod
    def parse(cls, value: str) -> "AuditDirection":
        """Parse "from"/"to" in any case.

        Raises:
            InvalidAuditDirectionError: For anything else
        """
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            raise InvalidAuditDirectionError(str(value)) from None

    @property
    def kind(self) -> AuditKind:
        """Kind listing this side of the transfers of a document."""
        return AuditKind.TRANSFER_FROM if self is AuditDirection.FROM else AuditKind.TRANSFER_TO

    @property
    def matter_kind(self) -> AuditKind:
        """Kind listing a matter's outgoing (FROM) or incoming (TO) transfers."""
        if self is AuditDirection.FROM:
            return AuditKind.MATTER_TRANSFER_FROM
        return AuditKind.MATTER_TRANSFER_TO


@dataclass(frozen=True)
class TransferEvent:
    """The From and To records of one document transfer."""

    from_record: MatterDocumentActivityUserFrom
    to_record: MatterDocumentActivityUserTo

    @property
    def transfer_id(self) -> uuid.UUID:
        return self.from_record.transfer_id

    @property
    def document_id(self) -> uuid.UUID:
        return self.from_record.document_id

    @property
    def from_matter_id(self) -> uuid.UUID:
        return self.from_record.matter_id

    @property
    def to_matter_id(self) -> uuid.UUID:
        return self.to_record.matter_id

    @property
    def created_at(self) -> datetime:
        return self.from_record.created_at


# ============================================================================
# AUDIT TRAIL REPOSITORY
# ============================================================================


class AuditTrailRepository:
    """Repository for audit trail records.

    Uses composition: one BaseRepository per audit table for reads and
    transaction control, and an EntityExistenceValidator for the referential
    checks the database cannot express (soft-deleted subjects still count).

    Example:
        repo = AuditTrailRepository(session)
        await repo.record_activity(
            AuditKind.MATTER, matter_id, MATTER_ACTIVITY_IDS[MatterActivityType.CREATED], user_id
        )
        event = await repo.record_transfer(document_id, old_matter_id, new_matter_id, moved_id, user_id)
        page = await repo.query_audits(AuditKind.MATTER, matter_id, ResourceParameters(order_by="createdAt desc"))
    """

    def __init__(self, session: AsyncSession, registry: Optional[FieldMappingRegistry] = None) -> None:
        self._session = session
        self._registry = registry if registry is not None else get_registry()
        self._validator = EntityExistenceValidator(session)
        self._records: dict[AuditKind, BaseRepository[Any]] = {
            kind: BaseRepository(session, kind.descriptor.record_model) for kind in AuditKind
        }

    def mapping_for(self, kind: AuditKind) -> FieldMapping:
        descriptor = kind.descriptor
        return self._registry.get_mapping(descriptor.dto_type, descriptor.record_model)

    async def _refresh(self, record: Any, activity_relationship: str) -> None:
        # Relationships must be loaded while we are still in async context.
        record_id = record.id
        try:
            await self._session.refresh(record, ["user", activity_relationship])
        except SQLAlchemyError as e:
            logger.error(
                "Failed to reload audit record",
                record_id=str(record_id),
                error=str(e),
                exc_info=True,
            )
            raise PersistenceError(
                f"Audit record {record_id} was written but could not be reloaded: {e}"
            ) from e

    async def _write(self, records: Sequence[Any], commit: bool, **log_context: Any) -> None:
        """Flush records together and optionally commit; roll back all of them on failure."""
        try:
            self._session.add_all(records)
            await self._session.flush()
            if commit:
                await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            logger.error("Failed to write audit records", error=str(e), exc_info=True, **log_context)
            raise PersistenceError(f"Failed to write audit records: {e}") from e

    # ========================================================================
    # WRITES
    # ========================================================================

    @trace_database("audit.record_activity")
    async def record_activity(
        self,
        kind: AuditKind,
        subject_id: uuid.UUID,
        activity_id: uuid.UUID,
        user_id: uuid.UUID,
        at: Optional[datetime] = None,
        commit: bool = True,
    ) -> Any:
        """Append one activity record for a matter, document or revision.

        Args:
            kind: MATTER, DOCUMENT or REVISION
            subject_id: Matter, document or revision the activity was performed on
            activity_id: Id from the kind's activity vocabulary
            user_id: Acting user
            at: Event time (default: now, UTC)
            commit: Commit after flushing; pass False to join a larger transaction

        Returns:
            The persisted record with its activity and user loaded

        Raises:
            ValueError: If kind is a transfer kind (use record_transfer)
            ReferentialIntegrityError: If subject, activity or user does not exist
            PersistenceError: If the write fails, or the written record cannot
                be reloaded
        """
        if kind.is_transfer:
            raise ValueError(f"{kind.name} records are written in pairs by record_transfer()")

        descriptor = kind.descriptor
        await self._validator.ensure_exists(descriptor.subject_model, subject_id)
        await self._validator.ensure_exists(descriptor.activity_model, activity_id)
        await self._validator.ensure_exists(User, user_id)

        record = descriptor.record_model(**{
            descriptor.subject_column: subject_id,
            descriptor.activity_column: activity_id,
            "user_id": user_id,
            "created_at": at or utcnow(),
        })
        await self._write([record], commit, kind=kind.name, subject_id=str(subject_id))
        await self._refresh(record, descriptor.activity_relationship)

        logger.info(
            "Recorded activity",
            kind=kind.name,
            subject_id=str(subject_id),
            activity=record.activity,
            user_id=str(user_id),
        )
        return record

    @trace_database("audit.record_transfer")
    async def record_transfer(
        self,
        document_id: uuid.UUID,
        from_matter_id: uuid.UUID,
        to_matter_id: uuid.UUID,
        activity_id: uuid.UUID,
        user_id: uuid.UUID,
        at: Optional[datetime] = None,
        commit: bool = True,
    ) -> TransferEvent:
        """Record a document moving or being copied between matters.

        Writes exactly one From record (origin matter) and one To record
        (destination matter) with the same document, activity, user,
        timestamp and transfer_id, in a single flush. Either both rows are
        persisted or neither is.

        Raises:
            ReferentialIntegrityError: If document, either matter, activity or user does not exist
            PersistenceError: If the write fails (nothing is persisted) or the
                written records cannot be reloaded
        """
        await self._validator.ensure_exists(Document, document_id)
        await self._validator.ensure_exists(Matter, from_matter_id)
        await self._validator.ensure_exists(Matter, to_matter_id)
        await self._validator.ensure_exists(MatterDocumentActivity, activity_id)
        await self._validator.ensure_exists(User, user_id)

        shared = {
            "transfer_id": uuid.uuid4(),
            "document_id": document_id,
            "matter_document_activity_id": activity_id,
            "user_id": user_id,
            "created_at": at or utcnow(),
        }
        from_record = MatterDocumentActivityUserFrom(matter_id=from_matter_id, **shared)
        to_record = MatterDocumentActivityUserTo(matter_id=to_matter_id, **shared)

        await self._write(
            [from_record, to_record],
            commit,
            kind="TRANSFER",
            document_id=str(document_id),
            transfer_id=str(shared["transfer_id"]),
        )
        await self._refresh(from_record, "matter_document_activity")
        await self._refresh(to_record, "matter_document_activity")

        logger.info(
            "Recorded document transfer",
            transfer_id=str(shared["transfer_id"]),
            document_id=str(document_id),
            from_matter_id=str(from_matter_id),
            to_matter_id=str(to_matter_id),
            activity=from_record.activity,
            user_id=str(user_id),
        )
        return TransferEvent(from_record, to_record)

    # ========================================================================
    # READS
    # ========================================================================

    async def _ensure_subject(self, kind: AuditKind, subject_id: uuid.UUID) -> None:
        descriptor = kind.descriptor
        if not await self._validator.exists(descriptor.subject_model, subject_id):
            raise NotFoundError(f"{descriptor.subject_model.__name__} with id {subject_id} not found")

    def _statement(self, kind: AuditKind, subject_id: uuid.UUID) -> Any:
        descriptor = kind.descriptor
        model = descriptor.record_model
        return select(model).where(getattr(model, descriptor.subject_column) == subject_id)

    @trace_database("audit.query_audits")
    async def query_audits(
        self,
        kind: AuditKind,
        subject_id: uuid.UUID,
        parameters: Optional[ResourceParameters] = None,
    ) -> Page[Any]:
        """List one subject's audit records, oldest first unless orderBy says otherwise.

        Raises:
            UnknownSortFieldError: If parameters.order_by names an unmapped field
            InvalidPageParameterError: If page number or size is below 1
            NotFoundError: If the subject does not exist
            PersistenceError: For database errors
        """
        if parameters is None:
            parameters = ResourceParameters()
        mapping = self.mapping_for(kind)
        compile_sort(parameters.order_by, mapping)

        await self._ensure_subject(kind, subject_id)
        return await self._records[kind].list(
            parameters,
            mapping=mapping,
            default_order=DEFAULT_AUDIT_ORDER,
            statement=self._statement(kind, subject_id),
        )

    @trace_database("audit.query_audits_shaped")
    async def query_audits_shaped(
        self,
        kind: AuditKind,
        subject_id: uuid.UUID,
        parameters: Optional[ResourceParameters] = None,
    ) -> ShapedPage[Any]:
        """Like query_audits, but returns DTOs pruned to parameters.fields.

        Bad fields and orderBy values are rejected before any database work.
        """
        if parameters is None:
            parameters = ResourceParameters()
        descriptor = kind.descriptor
        mapping = self.mapping_for(kind)
        resolve_fields(descriptor.dto_type, parameters.fields)
        compile_sort(parameters.order_by, mapping)

        await self._ensure_subject(kind, subject_id)
        return await fetch_shaped_page(
            self._records[kind].source(self._statement(kind, subject_id)),
            parameters,
            mapping=mapping,
            dto_type=descriptor.dto_type,
            default_order=DEFAULT_AUDIT_ORDER,
        )

    @trace_database("audit.get_transfers")
    async def get_transfers(self, document_id: uuid.UUID) -> list[TransferEvent]:
        """Every transfer of a document, oldest first, with both records paired.

        Raises:
            NotFoundError: If the document does not exist
            PersistenceError: For database errors
        """
        await self._ensure_subject(AuditKind.TRANSFER_FROM, document_id)

        try:
            from_result = await self._session.execute(
                self._statement(AuditKind.TRANSFER_FROM, document_id)
            )
            to_result = await self._session.execute(
                self._statement(AuditKind.TRANSFER_TO, document_id)
            )
        except SQLAlchemyError as e:
            logger.error("Failed to load transfers", document_id=str(document_id), error=str(e))
            raise PersistenceError(f"Failed to load transfers: {e}") from e

        to_records = {record.transfer_id: record for record in to_result.scalars().unique()}
        events: list[TransferEvent] = []
        for from_record in from_result.scalars().unique():
            to_record = to_records.pop(from_record.transfer_id, None)
            if to_record is None:
                logger.warning(
                    "Transfer has no To record",
                    transfer_id=str(from_record.transfer_id),
                    document_id=str(document_id),
                )
                continue
            events.append(TransferEvent(from_record, to_record))

        for orphan in to_records.values():
            logger.warning(
                "Transfer has no From record",
                transfer_id=str(orphan.transfer_id),
                document_id=str(document_id),
            )

        events.sort(key=lambda event: (event.created_at, str(event.transfer_id)))
        return events
