"""Queryable data sources.

A source is an immutable description of "these rows, in this order, this
slice". The sort compiler and the paginator only talk to the QuerySource
protocol, so the same pipeline runs against the database and against plain
Python collections.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Generic, Protocol, TypeVar

from sqlalchemy import Select, func, inspect as sa_inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import ColumnProperty, RelationshipProperty

from adms.core.errors import MappingConfigurationError, PersistenceError
from adms.core.logging import get_logger
from adms.core.tracing import trace_database
from adms.query.sorting import OrderKey

logger = get_logger(__name__)

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class QuerySource(Protocol[T_co]):
    """What the query engine needs from a collection.

    order_by/skip/take return new sources and do no I/O. count and
    materialize are the suspension points.
    """

    @property
    def primary_key(self) -> tuple[str, ...]: ...

    def order_by(self, keys: Sequence[OrderKey]) -> "QuerySource[T_co]": ...

    def skip(self, count: int) -> "QuerySource[T_co]": ...

    def take(self, count: int) -> "QuerySource[T_co]": ...

    async def count(self) -> int: ...

    async def materialize(self) -> list[T_co]: ...


def _slice(offset: int, limit: int | None, skip: int = 0, take: int | None = None) -> tuple[int, int | None]:
    """Compose a further skip/take onto an existing window."""
    if skip < 0 or (take is not None and take < 0):
        raise ValueError("skip and take must be non-negative")
    if skip:
        offset += skip
        if limit is not None:
            limit = max(limit - skip, 0)
    if take is not None:
        limit = take if limit is None else min(limit, take)
    return offset, limit


# ============================================================================
# SQLALCHEMY
# ============================================================================


class SqlAlchemySource(Generic[T]):
    """Source backed by a SQLAlchemy ORM select over a single entity.

    Ordering is pushed down as ORDER BY. A path may go through one
    relationship ("user.name"); the relationship is outer-joined once no
    matter how many keys use it.

    Example:
        source = SqlAlchemySource(session, select(MatterActivityUser).where(...))
        page = await paginate(apply_sort(source, "createdAt desc", mapping), 1, 10)
    """

    def __init__(
        self,
        session: AsyncSession,
        statement: Select,
        *,
        _count_statement: Select | None = None,
        _joined: frozenset[str] = frozenset(),
        _offset: int = 0,
        _limit: int | None = None,
    ) -> None:
        self._session = session
        self._statement = statement
        self._count_statement = _count_statement if _count_statement is not None else statement
        self._joined = _joined
        self._offset = _offset
        self._limit = _limit

        descriptions = statement.column_descriptions
        entity = descriptions[0].get("entity") if descriptions else None
        # select(Matter.description) names Matter as entity too; the expr must be the class itself
        if entity is None or len(descriptions) != 1 or descriptions[0].get("expr") is not entity:
            raise MappingConfigurationError("SqlAlchemySource needs a select over an ORM entity")
        self._entity = entity
        self._mapper = sa_inspect(entity)

    def _copy(self, **changes: Any) -> "SqlAlchemySource[T]":
        state = {
            "statement": self._statement,
            "_count_statement": self._count_statement,
            "_joined": self._joined,
            "_offset": self._offset,
            "_limit": self._limit,
        }
        state.update(changes)
        return SqlAlchemySource(self._session, **state)

    @property
    def statement(self) -> Select:
        """The ordered statement, without offset/limit."""
        return self._statement

    @property
    def primary_key(self) -> tuple[str, ...]:
        return tuple(self._mapper.get_property_by_column(column).key for column in self._mapper.primary_key)

    def _column_for(self, path: str, statement: Select, joined: set[str]) -> tuple[Any, Select]:
        head, _, tail = path.partition(".")
        prop = self._mapper.attrs.get(head)

        if not tail:
            if not isinstance(prop, ColumnProperty):
                raise MappingConfigurationError(
                    f"'{path}' is not a column of {self._entity.__name__}"
                )
            return getattr(self._entity, head), statement

        if not isinstance(prop, RelationshipProperty) or "." in tail:
            raise MappingConfigurationError(
                f"'{path}' is not a one-hop relationship path on {self._entity.__name__}"
            )
        target = prop.mapper
        if not isinstance(target.attrs.get(tail), ColumnProperty):
            raise MappingConfigurationError(
                f"'{tail}' is not a column of {target.class_.__name__}"
            )
        if head not in joined:
            statement = statement.outerjoin(getattr(self._entity, head))
            joined.add(head)
        return getattr(target.class_, tail), statement

    def order_by(self, keys: Sequence[OrderKey]) -> "SqlAlchemySource[T]":
        """Replace any existing ordering with keys, in order."""
        joined = set(self._joined)
        statement = self._statement.order_by(None)
        clauses = []
        for key in keys:
            column, statement = self._column_for(key.path, statement, joined)
            clauses.append(column.desc() if key.descending else column.asc())
        if clauses:
            statement = statement.order_by(*clauses)
        return self._copy(statement=statement, _joined=frozenset(joined))

    def skip(self, count: int) -> "SqlAlchemySource[T]":
        offset, limit = _slice(self._offset, self._limit, skip=count)
        return self._copy(_offset=offset, _limit=limit)

    def take(self, count: int) -> "SqlAlchemySource[T]":
        offset, limit = _slice(self._offset, self._limit, take=count)
        return self._copy(_offset=offset, _limit=limit)

    @trace_database("query.count")
    async def count(self) -> int:
        """Count rows of the unordered, unsliced statement."""
        stmt = select(func.count()).select_from(self._count_statement.order_by(None).subquery())
        try:
            result = await self._session.execute(stmt)
            return result.scalar_one()
        except SQLAlchemyError as e:
            logger.error(
                "Count query failed",
                entity=self._entity.__name__,
                error=str(e),
                exc_info=True,
            )
            raise PersistenceError(f"Failed to count {self._entity.__name__} rows: {e}") from e

    @trace_database("query.materialize")
    async def materialize(self) -> list[T]:
        """Execute the ordered, sliced statement and return the entities."""
        stmt = self._statement
        if self._offset:
            stmt = stmt.offset(self._offset)
        if self._limit is not None:
            stmt = stmt.limit(self._limit)
        try:
            result = await self._session.execute(stmt)
            return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            logger.error(
                "Fetch query failed",
                entity=self._entity.__name__,
                offset=self._offset,
                limit=self._limit,
                error=str(e),
                exc_info=True,
            )
            raise PersistenceError(f"Failed to load {self._entity.__name__} rows: {e}") from e


# ============================================================================
# IN-MEMORY
# ============================================================================


def extract_path(item: Any, path: str) -> Any:
    """Follow a dotted path through attributes (or mapping keys)."""
    value = item
    for part in path.split("."):
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value[part]
        else:
            value = getattr(value, part)
    return value


class InMemorySource(Generic[T]):
    """Source over an in-memory collection.

    Sorting is stable and composite: keys are applied from last to first.
    None sorts before any value ascending and after any value descending,
    which is what SQLite does.
    """

    def __init__(
        self,
        items: Iterable[T],
        primary_key: Sequence[str] = (),
        *,
        _offset: int = 0,
        _limit: int | None = None,
    ) -> None:
        self._items = list(items)
        self._primary_key = tuple(primary_key)
        self._offset = _offset
        self._limit = _limit

    @property
    def primary_key(self) -> tuple[str, ...]:
        return self._primary_key

    def order_by(self, keys: Sequence[OrderKey]) -> "InMemorySource[T]":
        ordered = list(self._items)
        for key in reversed(keys):
            ordered.sort(
                key=lambda item, path=key.path: _none_first(extract_path(item, path)),
                reverse=key.descending,
            )
        return InMemorySource(ordered, self._primary_key, _offset=self._offset, _limit=self._limit)

    def skip(self, count: int) -> "InMemorySource[T]":
        offset, limit = _slice(self._offset, self._limit, skip=count)
        return InMemorySource(self._items, self._primary_key, _offset=offset, _limit=limit)

    def take(self, count: int) -> "InMemorySource[T]":
        offset, limit = _slice(self._offset, self._limit, take=count)
        return InMemorySource(self._items, self._primary_key, _offset=offset, _limit=limit)

    async def count(self) -> int:
        return len(self._items)

    async def materialize(self) -> list[T]:
        end = None if self._limit is None else self._offset + self._limit
        return self._items[self._offset:end]


def _none_first(value: Any) -> tuple[bool, Any]:
    return (value is not None, value)
