"""Page-based pagination.

paginate() counts the source, then fetches one slice of it. The two reads are
independent: under concurrent writes total_pages may disagree with the items
returned, which is accepted.

Also here: the client-facing ResourceParameters (pageNumber, pageSize,
orderBy, fields), the X-Pagination metadata model, and the HATEOAS-style
navigation links built from the request URL.
"""

import math
from collections.abc import Callable, Sequence
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from starlette.datastructures import URL

from adms.core.config import settings
from adms.core.errors import InvalidPageParameterError
from adms.core.logging import get_logger
from adms.core.tracing import trace_database

if TYPE_CHECKING:
    from adms.query.sources import QuerySource

logger = get_logger(__name__)

T = TypeVar("T")
U = TypeVar("U")


def _validate(page_number: int, page_size: int) -> None:
    if page_number < 1:
        raise InvalidPageParameterError("pageNumber", page_number)
    if page_size < 1:
        raise InvalidPageParameterError("pageSize", page_size)


# ============================================================================
# PAGE
# ============================================================================


class PaginationMetadata(BaseModel):
    """Wire shape of the X-Pagination header."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    current_page: int
    total_pages: int
    page_size: int
    total_count: int
    has_previous: bool
    has_next: bool


class Page(Generic[T]):
    """One ordered, bounded slice of a source plus count metadata.

    Attributes:
        items: Entities in this page
        current_page: 1-based page number
        page_size: Requested page size
        total_count: Count of the whole source
        total_pages: ceil(total_count / page_size), 0 for an empty source
        has_previous: current_page > 1
        has_next: current_page < total_pages

    Example:
        page = await paginate(source, page_number=2, page_size=10)
        for item in page.items:
            ...
        response.headers["X-Pagination"] = page.metadata().model_dump_json(by_alias=True)
    """

    def __init__(self, items: Sequence[T], total_count: int, current_page: int, page_size: int) -> None:
        _validate(current_page, page_size)
        self.items = list(items)
        self.total_count = total_count
        self.current_page = current_page
        self.page_size = page_size
        self.total_pages = math.ceil(total_count / page_size)
        self.has_previous = current_page > 1
        self.has_next = current_page < self.total_pages

    @classmethod
    def create_empty(cls, page_number: int, page_size: int) -> "Page[T]":
        """A page with no items and a zero count. Parameters are still validated."""
        return cls([], 0, page_number, page_size)

    def map(self, func: Callable[[T], U]) -> "Page[U]":
        """Transform the items, keeping the metadata."""
        return Page([func(item) for item in self.items], self.total_count, self.current_page, self.page_size)

    def metadata(self) -> PaginationMetadata:
        return PaginationMetadata(
            current_page=self.current_page,
            total_pages=self.total_pages,
            page_size=self.page_size,
            total_count=self.total_count,
            has_previous=self.has_previous,
            has_next=self.has_next,
        )

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Any:
        return iter(self.items)

    def __repr__(self) -> str:
        return (
            f"Page(current_page={self.current_page}, page_size={self.page_size}, "
            f"total_count={self.total_count}, items={len(self.items)})"
        )


@trace_database("query.paginate")
async def paginate(source: "QuerySource[T]", page_number: int, page_size: int) -> Page[T]:
    """Count the source, then fetch page page_number of it.

    Raises:
        InvalidPageParameterError: If page_number or page_size is below 1
        PersistenceError: If the source fails to read
    """
    _validate(page_number, page_size)

    total_count = await source.count()
    items = await source.skip((page_number - 1) * page_size).take(page_size).materialize()

    logger.debug(
        "Paginated source",
        page_number=page_number,
        page_size=page_size,
        total_count=total_count,
        returned=len(items),
    )
    return Page(items, total_count, page_number, page_size)


# ============================================================================
# RESOURCE PARAMETERS AND LINKS
# ============================================================================


class ResourceParameters:
    """Client paging, sorting and shaping parameters.

    page_size is silently clamped to settings.max_page_size. Values below 1
    are left alone so paginate() can reject them.

    Attributes:
        page_number: 1-based page number (default 1)
        page_size: Items per page (default settings.default_page_size)
        order_by: Sort expression, e.g. "createdAt desc"
        fields: Comma-separated field list for shaping
    """

    def __init__(
        self,
        page_number: int = 1,
        page_size: int | None = None,
        order_by: str | None = None,
        fields: str | None = None,
    ) -> None:
        if page_size is None:
            page_size = settings.default_page_size
        self.page_number = page_number
        self.page_size = min(page_size, settings.max_page_size)
        self.order_by = order_by
        self.fields = fields

    def __repr__(self) -> str:
        return (
            f"ResourceParameters(page_number={self.page_number}, page_size={self.page_size}, "
            f"order_by={self.order_by!r}, fields={self.fields!r})"
        )


class ResourceUriType(str, Enum):
    CURRENT = "self"
    NEXT_PAGE = "nextPage"
    PREVIOUS_PAGE = "previousPage"


def create_resource_uri(url: URL | str, parameters: ResourceParameters, kind: ResourceUriType) -> str:
    """Build the URL of the current, next or previous page.

    Paging, sorting and shaping parameters of the request are carried over;
    any other query parameters on url are kept as they are.
    """
    page_number = parameters.page_number
    if kind is ResourceUriType.NEXT_PAGE:
        page_number += 1
    elif kind is ResourceUriType.PREVIOUS_PAGE:
        page_number -= 1

    target = URL(str(url)).remove_query_params(["orderBy", "fields"])
    query: dict[str, Any] = {"pageNumber": page_number, "pageSize": parameters.page_size}
    if parameters.order_by:
        query["orderBy"] = parameters.order_by
    if parameters.fields:
        query["fields"] = parameters.fields
    return str(target.include_query_params(**query))


def create_links(url: URL | str, parameters: ResourceParameters, page: Page[Any]) -> list[dict[str, str]]:
    """Navigation links for a page: self, plus next/previous when they exist."""
    links = [_link(url, parameters, ResourceUriType.CURRENT)]
    if page.has_next:
        links.append(_link(url, parameters, ResourceUriType.NEXT_PAGE))
    if page.has_previous:
        links.append(_link(url, parameters, ResourceUriType.PREVIOUS_PAGE))
    return links


def _link(url: URL | str, parameters: ResourceParameters, kind: ResourceUriType) -> dict[str, str]:
    return {
        "href": create_resource_uri(url, parameters, kind),
        "rel": kind.value,
        "method": "GET",
    }
