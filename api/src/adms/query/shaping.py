"""Field shaping projector.

Prunes objects down to a client-chosen subset of fields ("fields=id,activity").
Each shape type has an accessor table: an ordered name -> getter mapping.
Pydantic models get theirs from their declared fields (keyed by alias, so the
names match what the client sees on the wire); anything else registers one
explicitly with register_accessors().
"""

import dataclasses
from collections.abc import Callable, Iterable, Mapping, Sequence
from operator import attrgetter
from typing import Any, NamedTuple

from pydantic import BaseModel

from adms.core.errors import MappingConfigurationError, UnknownShapeFieldError
from adms.core.tracing import trace_sync

Accessor = Callable[[Any], Any]
ShapedRecord = dict[str, Any]


class _AccessorTable(NamedTuple):
    accessors: dict[str, Accessor]
    canonical: dict[str, str]


# Filled lazily; two requests racing on the first access build equal tables.
_accessor_cache: dict[Any, _AccessorTable] = {}


def _table(accessors: Mapping[str, Accessor]) -> _AccessorTable:
    ordered = dict(accessors)
    canonical: dict[str, str] = {}
    for name in ordered:
        lowered = name.lower()
        if lowered in canonical:
            raise MappingConfigurationError(
                f"Accessor names '{canonical[lowered]}' and '{name}' differ only by case"
            )
        canonical[lowered] = name
    return _AccessorTable(ordered, canonical)


def _derive_accessors(shape_type: Any) -> dict[str, Accessor]:
    if isinstance(shape_type, type) and issubclass(shape_type, BaseModel):
        return {
            (info.serialization_alias or info.alias or name): attrgetter(name)
            for name, info in shape_type.model_fields.items()
        }
    if dataclasses.is_dataclass(shape_type):
        return {f.name: attrgetter(f.name) for f in dataclasses.fields(shape_type)}
    raise MappingConfigurationError(
        f"No accessors registered for {getattr(shape_type, '__name__', shape_type)}"
    )


def register_accessors(shape_type: Any, accessors: Mapping[str, Accessor]) -> None:
    """Register an explicit accessor table, replacing any derived one.

    Example:
        register_accessors(Matter, {
            "id": attrgetter("id"),
            "description": attrgetter("description"),
            "documentCount": lambda m: len(m.documents),
        })
    """
    _accessor_cache[shape_type] = _table(accessors)


def get_accessors(shape_type: Any) -> Mapping[str, Accessor]:
    """Return the accessor table for shape_type, building it on first use."""
    return _get_table(shape_type).accessors


def _get_table(shape_type: Any) -> _AccessorTable:
    table = _accessor_cache.get(shape_type)
    if table is None:
        table = _table(_derive_accessors(shape_type))
        _accessor_cache[shape_type] = table
    return table


def resolve_fields(shape_type: Any, fields: str | Sequence[str] | None) -> list[str]:
    """Resolve a client field list into canonical accessor names.

    None or blank selects every field in declaration order. Otherwise names
    are matched case-insensitively, blanks are skipped and duplicates keep
    their first position.

    Raises:
        UnknownShapeFieldError: For the first name the shape does not expose
    """
    table = _get_table(shape_type)

    if fields is None:
        return list(table.accessors)
    names = fields.split(",") if isinstance(fields, str) else list(fields)
    names = [name.strip() for name in names if name and name.strip()]
    if not names:
        return list(table.accessors)

    resolved: list[str] = []
    for name in names:
        canonical = table.canonical.get(name.lower())
        if canonical is None:
            raise UnknownShapeFieldError(name, getattr(shape_type, "__name__", ""))
        if canonical not in resolved:
            resolved.append(canonical)
    return resolved


def _project(item: Any, accessors: Mapping[str, Accessor], names: Sequence[str]) -> ShapedRecord:
    return {name: accessors[name](item) for name in names}


def shape_item(item: Any, shape_type: Any, fields: str | Sequence[str] | None = None) -> ShapedRecord:
    """Shape a single object."""
    names = resolve_fields(shape_type, fields)
    return _project(item, get_accessors(shape_type), names)


@trace_sync("query.shape_data", component="query")
def shape_data(
    items: Iterable[Any],
    shape_type: Any,
    fields: str | Sequence[str] | None = None,
) -> list[ShapedRecord]:
    """Shape every item of a collection.

    The field list is resolved before any record is built, so a bad field
    name raises without producing partial output. Every record carries the
    same keys, in requested order.

    Raises:
        UnknownShapeFieldError: If fields names something the shape lacks

    Example:
        >>> shape_data(dtos, MatterActivityUserDto, "activity, createdAt")
        [{'activity': 'CREATED', 'createdAt': datetime(...)}, ...]
    """
    names = resolve_fields(shape_type, fields)
    accessors = get_accessors(shape_type)
    return [_project(item, accessors, names) for item in items]
