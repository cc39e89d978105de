"""Sort, page and shape a source in one call."""

from collections.abc import Mapping, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from adms.query.mapping import MappingEntry
from adms.query.pagination import Page, ResourceParameters, paginate
from adms.query.shaping import ShapedRecord, resolve_fields, shape_data
from adms.query.sorting import OrderKey, apply_sort
from adms.query.sources import QuerySource

T = TypeVar("T")
DtoType = TypeVar("DtoType", bound=BaseModel)


class ShapedPage(Generic[DtoType]):
    """Shaped records of one page, plus the page of DTOs they came from."""

    def __init__(self, items: list[ShapedRecord], page: Page[DtoType]) -> None:
        self.items = items
        self.page = page

    def __repr__(self) -> str:
        return f"ShapedPage(items={len(self.items)}, page={self.page!r})"


async def fetch_page(
    source: QuerySource[T],
    parameters: ResourceParameters,
    *,
    mapping: Mapping[str, MappingEntry],
    default_order: Sequence[OrderKey] | None = None,
) -> Page[T]:
    """Sort by parameters.order_by (or default_order) and fetch one page."""
    if parameters.order_by and parameters.order_by.strip():
        source = apply_sort(source, parameters.order_by, mapping)
    elif default_order:
        source = source.order_by(default_order)
    return await paginate(source, parameters.page_number, parameters.page_size)


async def fetch_shaped_page(
    source: QuerySource[Any],
    parameters: ResourceParameters,
    *,
    mapping: Mapping[str, MappingEntry],
    dto_type: type[DtoType],
    default_order: Sequence[OrderKey] | None = None,
) -> ShapedPage[DtoType]:
    """Run the full query pipeline.

    The field list is resolved before any I/O, so a bad fields parameter
    fails without touching the database.

    Raises:
        UnknownShapeFieldError: If parameters.fields names an unknown field
        UnknownSortFieldError: If parameters.order_by names an unmapped field
        InvalidPageParameterError: If the page number or size is below 1
        PersistenceError: If the source fails to read
    """
    names = resolve_fields(dto_type, parameters.fields)

    page = await fetch_page(source, parameters, mapping=mapping, default_order=default_order)
    dto_page = page.map(lambda entity: dto_type.model_validate(entity, from_attributes=True))

    return ShapedPage(shape_data(dto_page.items, dto_type, names), dto_page)
