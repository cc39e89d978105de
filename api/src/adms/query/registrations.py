"""Field mappings registered at application startup.

Each audit DTO maps onto its ORM record. The activity and user names live on
related rows, so they sort through a one-hop relationship path.
"""

import functools

from adms.models.audit import (
    DocumentActivityUser,
    MatterActivityUser,
    MatterDocumentActivityUserFrom,
    MatterDocumentActivityUserTo,
    RevisionActivityUser,
)
from adms.query.mapping import FieldMappingRegistry, MappingEntry
from adms.schemas.audit import (
    DocumentActivityUserDto,
    MatterActivityUserDto,
    MatterDocumentActivityUserDto,
    RevisionActivityUserDto,
)


def _entries(**paths: str | tuple[str, ...]) -> list[MappingEntry]:
    return [
        MappingEntry(name, (path,) if isinstance(path, str) else path)
        for name, path in paths.items()
    ]


def _actor_entries() -> list[MappingEntry]:
    return _entries(
        userId="user_id",
        userName="user.name",
        createdAt="created_at",
    )


def _transfer_entries() -> list[MappingEntry]:
    return _entries(
        id="id",
        transferId="transfer_id",
        matterId="matter_id",
        documentId="document_id",
        matterDocumentActivityId="matter_document_activity_id",
        activity="matter_document_activity.activity",
    ) + _actor_entries()


def build_registry() -> FieldMappingRegistry:
    """Build the registry with every DTO -> record mapping. Not frozen."""
    registry = FieldMappingRegistry()

    registry.register(
        MatterActivityUserDto,
        MatterActivityUser,
        _entries(
            id="id",
            matterId="matter_id",
            matterActivityId="matter_activity_id",
            activity="matter_activity.activity",
        ) + _actor_entries(),
    )
    registry.register(
        DocumentActivityUserDto,
        DocumentActivityUser,
        _entries(
            id="id",
            documentId="document_id",
            documentActivityId="document_activity_id",
            activity="document_activity.activity",
        ) + _actor_entries(),
    )
    registry.register(
        RevisionActivityUserDto,
        RevisionActivityUser,
        _entries(
            id="id",
            revisionId="revision_id",
            revisionActivityId="revision_activity_id",
            activity="revision_activity.activity",
        ) + _actor_entries(),
    )
    registry.register(MatterDocumentActivityUserDto, MatterDocumentActivityUserFrom, _transfer_entries())
    registry.register(MatterDocumentActivityUserDto, MatterDocumentActivityUserTo, _transfer_entries())

    return registry


@functools.lru_cache(maxsize=1)
def get_registry() -> FieldMappingRegistry:
    """The process-wide registry, built and frozen on first use."""
    return build_registry().freeze()
