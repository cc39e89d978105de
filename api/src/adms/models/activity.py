"""Activity vocabularies.

Each audited subject has its own fixed set of activities. The rows are
seeded with stable UUIDs so audit writers can reference them without a
lookup; the enums below are the source of truth for both the seed script
and the tests.
"""

import uuid
from enum import Enum

from adms.models.base import ActivityMixin, Base, generate_repr


def _seed_id(prefix: int, number: int) -> uuid.UUID:
    return uuid.UUID(f"{prefix:08d}-0000-0000-0000-{number:012d}")


class MatterActivity(Base, ActivityMixin):
    """Activity performed on a matter."""

    __tablename__ = "matter_activities"

    __repr__ = generate_repr("id", "activity")


class DocumentActivity(Base, ActivityMixin):
    """Activity performed on a document."""

    __tablename__ = "document_activities"

    __repr__ = generate_repr("id", "activity")


class RevisionActivity(Base, ActivityMixin):
    """Activity performed on a revision."""

    __tablename__ = "revision_activities"

    __repr__ = generate_repr("id", "activity")


class MatterDocumentActivity(Base, ActivityMixin):
    """Activity that transfers a document between matters (MOVED, COPIED)."""

    __tablename__ = "matter_document_activities"

    __repr__ = generate_repr("id", "activity")


class MatterActivityType(str, Enum):
    ARCHIVED = "ARCHIVED"
    CREATED = "CREATED"
    DELETED = "DELETED"
    RESTORED = "RESTORED"
    UNARCHIVED = "UNARCHIVED"
    VIEWED = "VIEWED"


class DocumentActivityType(str, Enum):
    CHECKED_IN = "CHECKED IN"
    CHECKED_OUT = "CHECKED OUT"
    CREATED = "CREATED"
    DELETED = "DELETED"
    RESTORED = "RESTORED"
    SAVED = "SAVED"


class RevisionActivityType(str, Enum):
    CREATED = "CREATED"
    DELETED = "DELETED"
    RESTORED = "RESTORED"
    SAVED = "SAVED"


class MatterDocumentActivityType(str, Enum):
    COPIED = "COPIED"
    MOVED = "MOVED"


def _seed_ids(prefix: int, vocabulary: type[Enum]) -> dict[Enum, uuid.UUID]:
    return {member: _seed_id(prefix, number) for number, member in enumerate(vocabulary, start=1)}


# Stable ids, numbered in declaration order within each vocabulary.
REVISION_ACTIVITY_IDS = _seed_ids(10000000, RevisionActivityType)
DOCUMENT_ACTIVITY_IDS = _seed_ids(20000000, DocumentActivityType)
MATTER_ACTIVITY_IDS = _seed_ids(30000000, MatterActivityType)
MATTER_DOCUMENT_ACTIVITY_IDS = _seed_ids(40000000, MatterDocumentActivityType)

ACTIVITY_VOCABULARIES: dict[type[Base], dict[Enum, uuid.UUID]] = {
    MatterActivity: MATTER_ACTIVITY_IDS,
    DocumentActivity: DOCUMENT_ACTIVITY_IDS,
    RevisionActivity: REVISION_ACTIVITY_IDS,
    MatterDocumentActivity: MATTER_DOCUMENT_ACTIVITY_IDS,
}
