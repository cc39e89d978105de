"""Generic per-model data access, wired into the query-shaping engine.

BaseRepository is composed into domain repositories rather than subclassed:
AuditTrailRepository holds one per audit table and hands its listings to
list()/source(), which sort, page and (via the pipeline) shape them.

Conventions shared by every method:
- Soft-deleted rows (deleted_at set) are hidden unless include_deleted=True
- Nothing commits implicitly; create() only flushes
- SQLAlchemy errors surface as PersistenceError (ConflictError for unique
  violations), after being logged with the model name
- Every I/O method is a @trace_database span

Usage:
    repo = BaseRepository(session, Matter)
    matter = await repo.get_or_404(matter_id)
    page = await repo.list(ResourceParameters(order_by="description"), mapping=matter_mapping)
    await repo.create(description="Smith v Jones")
    await repo.commit()
"""

import uuid
from collections.abc import Mapping, Sequence
from typing import Any, Generic, Optional, TypeVar, Union

from sqlalchemy import Select, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase

from adms.core.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ReferentialIntegrityError,
)
from adms.core.logging import get_logger
from adms.core.tracing import trace_database
from adms.query.mapping import MappingEntry
from adms.query.pagination import Page, ResourceParameters
from adms.query.pipeline import fetch_page
from adms.query.sorting import OrderKey
from adms.query.sources import SqlAlchemySource

ModelType = TypeVar("ModelType", bound=DeclarativeBase)

EntityId = Union[uuid.UUID, str, int]

logger = get_logger(__name__)


def is_unique_violation(error: SQLAlchemyError) -> bool:
    """Best-effort check for a unique constraint violation across drivers."""
    message = str(error).lower()
    return isinstance(error, IntegrityError) and ("unique" in message or "duplicate" in message)


# ============================================================================
# BASE REPOSITORY
# ============================================================================


class BaseRepository(Generic[ModelType]):
    """Reads, existence checks, creates and transaction control for one model.

    Args:
        session: Session shared with the owning repository
        model: Mapped class, e.g. Matter or MatterActivityUser

    Example:
        class AuditTrailRepository:
            def __init__(self, session: AsyncSession) -> None:
                self._records = {
                    kind: BaseRepository(session, kind.descriptor.record_model)
                    for kind in AuditKind
                }
    """

    def __init__(self, session: AsyncSession, model: type[ModelType]) -> None:
        self._session = session
        self._model = model
        self._logger = get_logger(f"{__name__}.{model.__name__}")

    @property
    def model(self) -> type[ModelType]:
        return self._model

    @property
    def session(self) -> AsyncSession:
        return self._session

    def _exclude_deleted(self, query: Select, include_deleted: bool) -> Select:
        if not include_deleted and hasattr(self._model, "deleted_at"):
            query = query.where(getattr(self._model, "deleted_at").is_(None))
        return query

    def _fail(self, action: str, error: SQLAlchemyError, **context: Any) -> PersistenceError:
        self._logger.error(
            f"Failed to {action}",
            model=self._model.__name__,
            error=str(error),
            **context,
        )
        if is_unique_violation(error):
            return ConflictError(f"{self._model.__name__} conflicts with existing data: {error}")
        return PersistenceError(f"Failed to {action}: {error}")

    # ========================================================================
    # WRITES
    # ========================================================================

    @trace_database()
    async def create(self, **kwargs: Any) -> ModelType:
        """Add a new entity and flush it, without committing.

        Generated defaults (id, timestamps) are populated on return.

        Raises:
            ConflictError: If a unique constraint is violated
            PersistenceError: For other database errors
        """
        entity = self._model(**kwargs)
        try:
            self._session.add(entity)
            await self._session.flush()
        except SQLAlchemyError as e:
            raise self._fail("create entity", e) from e

        self._logger.info(
            "Entity created",
            model=self._model.__name__,
            entity_id=str(getattr(entity, "id", None)),
        )
        return entity

    # ========================================================================
    # READS
    # ========================================================================

    @trace_database()
    async def get(self, entity_id: EntityId, include_deleted: bool = False) -> Optional[ModelType]:
        """Entity by id, or None. Soft-deleted rows only with include_deleted=True.

        Raises:
            PersistenceError: For database errors
        """
        query = select(self._model).where(getattr(self._model, "id") == entity_id)
        query = self._exclude_deleted(query, include_deleted)
        try:
            result = await self._session.execute(query)
            return result.unique().scalar_one_or_none()
        except SQLAlchemyError as e:
            raise self._fail("get entity", e, entity_id=str(entity_id)) from e

    @trace_database()
    async def get_or_404(self, entity_id: EntityId, include_deleted: bool = False) -> ModelType:
        """Like get(), but raises NotFoundError instead of returning None."""
        entity = await self.get(entity_id, include_deleted=include_deleted)
        if entity is None:
            raise NotFoundError(f"{self._model.__name__} with id {entity_id} not found")
        return entity

    @trace_database()
    async def exists(self, entity_id: EntityId, include_deleted: bool = False) -> bool:
        """Whether the id exists, via SELECT EXISTS without loading the row.

        Raises:
            PersistenceError: For database errors
        """
        query = select(getattr(self._model, "id")).where(getattr(self._model, "id") == entity_id)
        query = self._exclude_deleted(query, include_deleted)
        try:
            result = await self._session.execute(select(query.exists()))
            return bool(result.scalar())
        except SQLAlchemyError as e:
            raise self._fail("check entity existence", e, entity_id=str(entity_id)) from e

    # ========================================================================
    # LISTINGS
    # ========================================================================

    def source(
        self, statement: Optional[Select] = None, include_deleted: bool = False
    ) -> SqlAlchemySource[ModelType]:
        """Wrap a select over the model as a query source.

        Args:
            statement: Select to wrap (default: select(model))
            include_deleted: If True, keep soft-deleted rows
        """
        if statement is None:
            statement = select(self._model)
        return SqlAlchemySource(self._session, self._exclude_deleted(statement, include_deleted))

    async def list(
        self,
        parameters: Optional[ResourceParameters] = None,
        *,
        mapping: Mapping[str, MappingEntry],
        default_order: Optional[Sequence[OrderKey]] = None,
        statement: Optional[Select] = None,
        include_deleted: bool = False,
    ) -> Page[ModelType]:
        """List entities one page at a time.

        Sorts by parameters.order_by through mapping. Without an orderBy the
        default order is used: default_order if given, otherwise created_at
        descending when the model has it, otherwise id.

        Raises:
            UnknownSortFieldError: If order_by names an unmapped field
            InvalidPageParameterError: If page number or size is below 1
            PersistenceError: For database errors

        Example:
            page = await repo.list(
                ResourceParameters(page_number=1, page_size=20, order_by="description"),
                mapping=registry.get_mapping(MatterDto, Matter),
            )
            print(f"Page 1: {len(page.items)} items, total: {page.total_count}")
        """
        if parameters is None:
            parameters = ResourceParameters()

        if default_order is None:
            if hasattr(self._model, "created_at"):
                default_order = [OrderKey("created_at", True), OrderKey("id", False)]
            else:
                default_order = [OrderKey("id", False)]

        self._logger.debug(
            "Listing entities",
            model=self._model.__name__,
            parameters=repr(parameters),
            include_deleted=include_deleted,
        )

        return await fetch_page(
            self.source(statement, include_deleted=include_deleted),
            parameters,
            mapping=mapping,
            default_order=default_order,
        )

    @trace_database()
    async def count(self, include_deleted: bool = False) -> int:
        """Number of rows, soft-deleted ones only with include_deleted=True."""
        query = self._exclude_deleted(select(func.count(getattr(self._model, "id"))), include_deleted)
        try:
            result = await self._session.execute(query)
        except SQLAlchemyError as e:
            raise self._fail("count entities", e) from e
        return result.scalar() or 0

    # ========================================================================
    # TRANSACTIONS
    # ========================================================================

    async def commit(self) -> None:
        """Commit, rolling back first if the commit fails.

        Raises:
            ConflictError: If a unique constraint rejects the commit
            PersistenceError: For other database errors
        """
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise self._fail("commit transaction", e) from e
        self._logger.debug("Transaction committed", model=self._model.__name__)

    async def rollback(self) -> None:
        """Discard everything pending since the last commit."""
        try:
            await self._session.rollback()
        except SQLAlchemyError as e:
            raise self._fail("rollback transaction", e) from e
        self._logger.debug("Transaction rolled back", model=self._model.__name__)


# ============================================================================
# REFERENTIAL VALIDATION
# ============================================================================


class EntityExistenceValidator:
    """Checks that referenced entities exist before a row pointing at them is written.

    Soft-deleted entities count as existing: deleting or restoring something
    is itself audited.

    Example:
        validator = EntityExistenceValidator(session)
        await validator.ensure_exists(Matter, matter_id)  # ReferentialIntegrityError if missing
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repositories: dict[type[Any], BaseRepository[Any]] = {}

    def _repository(self, model: type[ModelType]) -> BaseRepository[ModelType]:
        repo = self._repositories.get(model)
        if repo is None:
            repo = BaseRepository(self._session, model)
            self._repositories[model] = repo
        return repo

    async def exists(self, model: type[ModelType], entity_id: EntityId) -> bool:
        return await self._repository(model).exists(entity_id, include_deleted=True)

    async def ensure_exists(self, model: type[ModelType], entity_id: EntityId) -> None:
        """Raise ReferentialIntegrityError naming the model if the entity is missing."""
        if not await self.exists(model, entity_id):
            logger.warning(
                "Referenced entity does not exist",
                entity=model.__name__,
                entity_id=str(entity_id),
            )
            raise ReferentialIntegrityError(model.__name__, entity_id)
