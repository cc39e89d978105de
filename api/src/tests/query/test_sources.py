"""Test query sources against memory and the database."""

from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from adms.core.errors import MappingConfigurationError, PersistenceError
from adms.models.document import Document
from adms.models.matter import Matter
from adms.query.sorting import OrderKey
from adms.query.sources import InMemorySource, SqlAlchemySource, extract_path
from factories import create_document, create_matter


@dataclass
class Owner:
    name: str


@dataclass
class Item:
    id: int
    rank: int | None
    owner: Owner | None = None


class TestExtractPath:
    """Test dotted path extraction."""

    def test_attribute_and_relationship_hop(self) -> None:
        """Test plain and one-hop paths."""
        item = Item(1, 5, Owner("ann"))
        assert extract_path(item, "rank") == 5
        assert extract_path(item, "owner.name") == "ann"

    def test_missing_intermediate_is_none(self) -> None:
        """Test a None hop yields None instead of failing."""
        assert extract_path(Item(1, 5), "owner.name") is None

    def test_mapping_keys(self) -> None:
        """Test dict items are read by key."""
        assert extract_path({"owner": {"name": "bob"}}, "owner.name") == "bob"


class TestInMemorySource:
    """Test the in-memory source."""

    @pytest.fixture
    def items(self) -> list[Item]:
        return [
            Item(1, 3, Owner("cid")),
            Item(2, None, Owner("ann")),
            Item(3, 1, Owner("bob")),
            Item(4, 3, Owner("ann")),
        ]

    async def test_none_sorts_first_ascending(self, items: list[Item]) -> None:
        """Test None values sort before any value ascending."""
        ordered = await InMemorySource(items).order_by([OrderKey("rank"), OrderKey("id")]).materialize()
        assert [i.id for i in ordered] == [2, 3, 1, 4]

    async def test_none_sorts_last_descending(self, items: list[Item]) -> None:
        """Test None values sort after any value descending."""
        ordered = await InMemorySource(items).order_by(
            [OrderKey("rank", True), OrderKey("id")]
        ).materialize()
        assert [i.id for i in ordered] == [1, 4, 3, 2]

    async def test_order_by_relationship_path(self, items: list[Item]) -> None:
        """Test one-hop paths sort like plain attributes."""
        ordered = await InMemorySource(items).order_by(
            [OrderKey("owner.name"), OrderKey("id", True)]
        ).materialize()
        assert [i.id for i in ordered] == [4, 2, 3, 1]

    async def test_order_by_does_not_mutate(self, items: list[Item]) -> None:
        """Test ordering returns a new source."""
        source = InMemorySource(items)
        source.order_by([OrderKey("id", True)])
        assert [i.id for i in await source.materialize()] == [1, 2, 3, 4]

    async def test_skip_and_take_compose(self, items: list[Item]) -> None:
        """Test repeated skip/take narrow the same window."""
        source = InMemorySource(items).skip(1).take(3).skip(1)

        assert [i.id for i in await source.materialize()] == [3, 4]
        assert await source.count() == 4

    def test_negative_skip_rejected(self, items: list[Item]) -> None:
        """Test negative offsets are programming errors."""
        with pytest.raises(ValueError):
            InMemorySource(items).skip(-1)


class TestSqlAlchemySource:
    """Test the SQLAlchemy source on a real in-memory database."""

    @pytest.fixture
    async def matters(self, db_session: AsyncSession) -> list[Matter]:
        matters = [
            await create_matter(db_session=db_session, description=description)
            for description in ("Charlie", "Alpha", "Bravo")
        ]
        await db_session.commit()
        return matters

    async def test_primary_key(self, db_session: AsyncSession) -> None:
        """Test the primary key is read from the mapper."""
        assert SqlAlchemySource(db_session, select(Matter)).primary_key == ("id",)

    def test_requires_orm_entity(self, db_session: AsyncSession) -> None:
        """Test a select over plain columns is rejected."""
        with pytest.raises(MappingConfigurationError):
            SqlAlchemySource(db_session, select(Matter.description))

    async def test_order_and_slice(self, db_session: AsyncSession, matters: list[Matter]) -> None:
        """Test ordering is pushed down and the slice applied in SQL."""
        source = SqlAlchemySource(db_session, select(Matter)).order_by([OrderKey("description")])

        assert [m.description for m in await source.materialize()] == ["Alpha", "Bravo", "Charlie"]
        assert [m.description for m in await source.skip(1).take(1).materialize()] == ["Bravo"]

    async def test_order_by_replaces_existing_order(self, db_session: AsyncSession, matters: list[Matter]) -> None:
        """Test a later order_by discards the earlier ordering."""
        source = (
            SqlAlchemySource(db_session, select(Matter).order_by(Matter.description))
            .order_by([OrderKey("description", True)])
        )
        assert [m.description for m in await source.materialize()] == ["Charlie", "Bravo", "Alpha"]

    async def test_count_ignores_slice(self, db_session: AsyncSession, matters: list[Matter]) -> None:
        """Test count covers the whole statement, not the window."""
        source = SqlAlchemySource(db_session, select(Matter)).skip(2).take(1)
        assert await source.count() == 3

    async def test_count_respects_filter(self, db_session: AsyncSession, matters: list[Matter]) -> None:
        """Test count applies the statement's where clause."""
        statement = select(Matter).where(Matter.description != "Alpha")
        assert await SqlAlchemySource(db_session, statement).count() == 2

    async def test_order_by_relationship_path(self, db_session: AsyncSession) -> None:
        """Test a one-hop path joins the related table once."""
        zulu = await create_matter(db_session=db_session, description="Zulu")
        alpha = await create_matter(db_session=db_session, description="Alpha")
        await create_document(db_session=db_session, matter=zulu, file_name="a")
        await create_document(db_session=db_session, matter=alpha, file_name="b")
        await create_document(db_session=db_session, matter=alpha, file_name="c")
        await db_session.commit()

        source = SqlAlchemySource(db_session, select(Document)).order_by([
            OrderKey("matter.description"),
            OrderKey("matter.description"),
            OrderKey("file_name", True),
        ])

        assert [d.file_name for d in await source.materialize()] == ["c", "b", "a"]
        assert await source.count() == 3

    def test_unknown_column_path(self, db_session: AsyncSession) -> None:
        """Test paths naming no column are configuration errors."""
        source = SqlAlchemySource(db_session, select(Document))

        with pytest.raises(MappingConfigurationError):
            source.order_by([OrderKey("nope")])
        with pytest.raises(MappingConfigurationError):
            source.order_by([OrderKey("matter")])
        with pytest.raises(MappingConfigurationError):
            source.order_by([OrderKey("matter.documents.file_name")])

    async def test_database_failure_is_wrapped(self) -> None:
        """Test driver errors surface as PersistenceError."""
        session = AsyncMock(spec=AsyncSession)
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("disk I/O error"))
        source = SqlAlchemySource(session, select(Matter))

        with pytest.raises(PersistenceError):
            await source.count()
        with pytest.raises(PersistenceError):
            await source.materialize()
