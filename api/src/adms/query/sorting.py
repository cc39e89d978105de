"""Dynamic sort compiler.

Turns a client orderBy expression such as "createdAt desc, userName" into a
list of OrderKey(path, descending) against the storage shape, using a field
mapping to translate names.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from adms.core.errors import FieldMappingNotFoundError, UnknownSortFieldError
from adms.core.logging import get_logger
from adms.query.mapping import MappingEntry, as_field_mapping

if TYPE_CHECKING:
    from adms.query.sources import QuerySource

logger = get_logger(__name__)

S = TypeVar("S", bound="QuerySource")

_DESCENDING = "desc"
_ASCENDING = "asc"


@dataclass(frozen=True)
class SortClause:
    """One parsed orderBy token."""

    field: str
    descending: bool = False


@dataclass(frozen=True)
class OrderKey:
    """One compiled ordering step: a storage path and its direction."""

    path: str
    descending: bool = False


def parse_order_by(order_by: str | None) -> list[SortClause]:
    """Split an orderBy expression into clauses.

    Tokens are comma separated. A trailing "desc" or "asc" word (any case)
    sets the direction; without one the clause is ascending. Blank tokens
    are skipped.

    Example:
        >>> parse_order_by("createdAt desc, userName")
        [SortClause(field='createdAt', descending=True), SortClause(field='userName', descending=False)]
    """
    if not order_by or not order_by.strip():
        return []

    clauses: list[SortClause] = []
    for token in order_by.split(","):
        words = token.split()
        if not words:
            continue

        descending = False
        if len(words) > 1 and words[-1].lower() in (_DESCENDING, _ASCENDING):
            descending = words[-1].lower() == _DESCENDING
            words = words[:-1]

        # Field names never contain spaces; anything left over is garbage.
        field = " ".join(words)
        if len(words) > 1:
            raise UnknownSortFieldError(field)
        clauses.append(SortClause(field=field, descending=descending))
    return clauses


def compile_sort(
    order_by: str | None,
    mapping: Mapping[str, MappingEntry],
    tiebreaker: Sequence[str] = (),
) -> list[OrderKey]:
    """Compile an orderBy expression into storage order keys.

    Each clause expands into its entry's destination paths, in order, with
    the requested direction flipped when the entry is marked reverse.
    Tiebreaker paths not already present are appended ascending so the
    resulting order is total.

    Raises:
        UnknownSortFieldError: If a clause names an unmapped field

    Example:
        >>> compile_sort("name desc, age", mapping)
        [OrderKey('last_name', True), OrderKey('first_name', True), OrderKey('age', False)]
    """
    field_mapping = as_field_mapping(mapping)
    keys: list[OrderKey] = []
    seen: set[str] = set()

    for clause in parse_order_by(order_by):
        try:
            entry = field_mapping.resolve(clause.field)
        except FieldMappingNotFoundError:
            raise UnknownSortFieldError(clause.field, available=list(field_mapping)) from None

        descending = clause.descending != entry.reverse
        for path in entry.destination_paths:
            keys.append(OrderKey(path, descending))
            seen.add(path)

    if keys:
        for path in tiebreaker:
            if path not in seen:
                keys.append(OrderKey(path, False))
                seen.add(path)

    return keys


def apply_sort(source: S, order_by: str | None, mapping: Mapping[str, MappingEntry]) -> S:
    """Reorder a source by a client orderBy expression.

    An empty or blank expression returns the source unchanged. Otherwise the
    source's primary key is used as tiebreaker and the compiled keys replace
    any existing ordering.
    """
    if not order_by or not order_by.strip():
        return source

    keys = compile_sort(order_by, mapping, tiebreaker=source.primary_key)
    if not keys:
        return source
    logger.debug(
        "Applying sort",
        order_by=order_by,
        keys=[f"{k.path} {'desc' if k.descending else 'asc'}" for k in keys],
    )
    return source.order_by(keys)
