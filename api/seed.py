"""Database seed script with the fixed vocabularies and sample data.

Creates the tables, the activity vocabularies (with their stable UUIDs), a
user and a handful of matters, each with a CREATED audit record.

Usage:
    # Local development
    uv run python seed.py

Features:
    - Idempotent: Safe to run multiple times
    - Stable ids: Activity, user and matter ids never change between runs
"""

import asyncio
import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from adms.core.database import async_session_maker, engine
from adms.core.logging import configure_logging, get_logger
from adms.models import Base, Matter, MatterActivityType, MatterActivityUser, User
from adms.models.activity import ACTIVITY_VOCABULARIES, MATTER_ACTIVITY_IDS
from adms.repositories.audit import AuditKind, AuditTrailRepository

configure_logging()
logger = get_logger(__name__)

USERS = [
    {"id": uuid.UUID("50000000-0000-0000-0000-000000000001"), "name": "rbrown"},
]

SEED_BASE = datetime(2024, 1, 1, tzinfo=UTC)

# (description, is_archived, is_deleted)
MATTERS = [
    ("Test Matter #1", False, False),
    ("Test Matter #2", False, False),
    ("Test Matter #3", True, False),
    ("Test Matter #4", False, True),
    ("Test Matter #5", True, True),
    ("Test Matter #6", True, True),
]


async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_vocabularies(session: AsyncSession) -> None:
    """Insert every activity row that is not there yet."""
    logger.info("Seeding activity vocabularies")

    for model, ids in ACTIVITY_VOCABULARIES.items():
        for member, activity_id in ids.items():
            if await session.get(model, activity_id) is not None:
                continue
            session.add(model(id=activity_id, activity=member.value))
            logger.info("Created activity", table=model.__tablename__, activity=member.value)

    await session.flush()


async def seed_users(session: AsyncSession) -> None:
    logger.info("Seeding users")

    for user_data in USERS:
        if await session.get(User, user_data["id"]) is None:
            session.add(User(**user_data))
            logger.info("Created user", name=user_data["name"])

    await session.flush()


async def seed_matters(session: AsyncSession) -> list[Matter]:
    """Create sample matters, returning the ones created by this run."""
    logger.info("Seeding matters")
    created = []

    for number, (description, is_archived, is_deleted) in enumerate(MATTERS, start=1):
        matter_id = uuid.UUID(f"60000000-0000-0000-0000-{number:012d}")
        if await session.get(Matter, matter_id) is not None:
            logger.debug("Matter already exists", description=description)
            continue

        creation_date = SEED_BASE + timedelta(days=number - 1)
        matter = Matter(
            id=matter_id,
            description=description,
            is_archived=is_archived,
            created_at=creation_date,
            updated_at=creation_date,
            deleted_at=creation_date if is_deleted else None,
        )
        session.add(matter)
        created.append(matter)
        logger.info("Created matter", description=description)

    await session.flush()
    return created


async def seed_database() -> None:
    """Main seeding function."""
    logger.info("Starting database seeding")
    await create_tables()

    async with async_session_maker() as session:
        try:
            await seed_vocabularies(session)
            await seed_users(session)
            matters = await seed_matters(session)

            audits = AuditTrailRepository(session)
            for minute, matter in enumerate(matters, start=1):
                await audits.record_activity(
                    AuditKind.MATTER,
                    matter.id,
                    MATTER_ACTIVITY_IDS[MatterActivityType.CREATED],
                    USERS[0]["id"],
                    at=datetime(2024, 1, 10, tzinfo=UTC) + timedelta(minutes=minute),
                    commit=False,
                )

            await session.commit()

            result = await session.execute(select(MatterActivityUser))
            logger.info(
                "Database seeding completed successfully",
                matters_created=len(matters),
                matter_audits=len(result.scalars().unique().all()),
            )

        except Exception as e:
            logger.error(f"Error seeding database: {e}")
            await session.rollback()
            raise


if __name__ == "__main__":
    asyncio.run(seed_database())
