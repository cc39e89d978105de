"""Audit record DTOs.

Field names serialize in camelCase, which is also the spelling clients use in
orderBy and fields parameters.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AuditDto(BaseModel):
    """Base for audit DTOs: built from ORM rows, camelCase on the wire."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class MatterActivityUserDto(AuditDto):
    id: uuid.UUID
    matter_id: uuid.UUID
    matter_activity_id: uuid.UUID
    activity: str
    user_id: uuid.UUID
    user_name: str
    created_at: datetime


class DocumentActivityUserDto(AuditDto):
    id: uuid.UUID
    document_id: uuid.UUID
    document_activity_id: uuid.UUID
    activity: str
    user_id: uuid.UUID
    user_name: str
    created_at: datetime


class RevisionActivityUserDto(AuditDto):
    id: uuid.UUID
    revision_id: uuid.UUID
    revision_activity_id: uuid.UUID
    activity: str
    user_id: uuid.UUID
    user_name: str
    created_at: datetime


class MatterDocumentActivityUserDto(AuditDto):
    """One side of a document transfer.

    matter_id is the origin matter for From records and the destination
    matter for To records.
    """

    id: uuid.UUID
    transfer_id: uuid.UUID
    matter_id: uuid.UUID
    document_id: uuid.UUID
    matter_document_activity_id: uuid.UUID
    activity: str
    user_id: uuid.UUID
    user_name: str
    created_at: datetime
