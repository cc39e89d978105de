"""Query-shaping engine: sort, paginate and shape any collection.

Typical use:

    source = SqlAlchemySource(session, select(MatterActivityUser))
    shaped = await fetch_shaped_page(
        source,
        ResourceParameters(page_number=1, page_size=10, order_by="createdAt desc", fields="activity"),
        mapping=registry.get_mapping(MatterActivityUserDto, MatterActivityUser),
        dto_type=MatterActivityUserDto,
    )
"""

from adms.query.mapping import FieldMapping, FieldMappingRegistry, MappingEntry
from adms.query.pagination import (
    Page,
    PaginationMetadata,
    ResourceParameters,
    ResourceUriType,
    create_links,
    create_resource_uri,
    paginate,
)
from adms.query.pipeline import ShapedPage, fetch_page, fetch_shaped_page
from adms.query.shaping import register_accessors, resolve_fields, shape_data, shape_item
from adms.query.sorting import OrderKey, SortClause, apply_sort, compile_sort, parse_order_by
from adms.query.sources import InMemorySource, QuerySource, SqlAlchemySource

__all__ = [
    "FieldMapping",
    "FieldMappingRegistry",
    "MappingEntry",
    "Page",
    "PaginationMetadata",
    "ResourceParameters",
    "ResourceUriType",
    "create_links",
    "create_resource_uri",
    "paginate",
    "ShapedPage",
    "fetch_page",
    "fetch_shaped_page",
    "register_accessors",
    "resolve_fields",
    "shape_data",
    "shape_item",
    "OrderKey",
    "SortClause",
    "apply_sort",
    "compile_sort",
    "parse_order_by",
    "InMemorySource",
    "QuerySource",
    "SqlAlchemySource",
]
