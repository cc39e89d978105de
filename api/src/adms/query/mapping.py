"""Field mapping registry.

Clients sort by the field names they see in responses (DTO fields). The
database sorts by column paths on the ORM model. A mapping translates one to
the other for a given (source shape, destination shape) pair, where a single
client field may expand into several paths ("name" -> last_name, first_name)
and may reverse the requested direction (e.g. "age" sorted by date of birth).

Mappings are registered once at startup and then only read. Lookups are
case-insensitive; unknown fields are rejected, never ignored.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from adms.core.errors import FieldMappingNotFoundError, MappingConfigurationError
from adms.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class MappingEntry:
    """Translation of one client field into destination paths.

    Attributes:
        source_field: Client-facing field name
        destination_paths: Ordered storage paths, dotted for one relationship hop
        reverse: Flip the requested sort direction for every path

    Raises:
        MappingConfigurationError: If the path list is empty or malformed
    """

    source_field: str
    destination_paths: tuple[str, ...]
    reverse: bool = False

    def __post_init__(self) -> None:
        paths = tuple(self.destination_paths)
        object.__setattr__(self, "destination_paths", paths)

        if not self.source_field or not self.source_field.strip():
            raise MappingConfigurationError("Mapping entry needs a source field name")
        if not paths:
            raise MappingConfigurationError(
                f"Mapping for '{self.source_field}' has no destination paths"
            )

        seen: set[str] = set()
        for path in paths:
            if not path or not path.strip():
                raise MappingConfigurationError(
                    f"Mapping for '{self.source_field}' contains a blank destination path"
                )
            lowered = path.lower()
            if lowered in seen:
                raise MappingConfigurationError(
                    f"Mapping for '{self.source_field}' lists '{path}' more than once"
                )
            seen.add(lowered)


class FieldMapping(Mapping[str, MappingEntry]):
    """Read-only, case-insensitive view of field -> MappingEntry.

    Iteration yields the field names as they were registered.
    """

    def __init__(self, entries: Mapping[str, MappingEntry] | Iterable[MappingEntry]) -> None:
        if isinstance(entries, Mapping):
            items = list(entries.items())
        else:
            items = [(entry.source_field, entry) for entry in entries]

        self._entries: dict[str, MappingEntry] = {}
        self._names: dict[str, str] = {}
        for name, entry in items:
            key = name.strip().lower()
            if key in self._entries:
                raise MappingConfigurationError(
                    f"Field '{name}' is mapped more than once (names are case-insensitive)"
                )
            self._entries[key] = entry
            self._names[key] = name.strip()

    def __getitem__(self, name: str) -> MappingEntry:
        return self._entries[name.strip().lower()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._names.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldMapping):
            return NotImplemented
        return self._entries == other._entries

    __hash__ = None  # type: ignore[assignment]

    def resolve(self, name: str) -> MappingEntry:
        """Return the entry for name or raise FieldMappingNotFoundError."""
        try:
            return self[name]
        except KeyError:
            raise FieldMappingNotFoundError(name, available=list(self)) from None

    def __repr__(self) -> str:
        return f"FieldMapping({list(self)!r})"


def as_field_mapping(mapping: Mapping[str, MappingEntry]) -> FieldMapping:
    """Wrap a plain dict so lookups become case-insensitive."""
    if isinstance(mapping, FieldMapping):
        return mapping
    return FieldMapping(mapping)


def _shape_name(shape: Any) -> str:
    return getattr(shape, "__name__", str(shape))


class FieldMappingRegistry:
    """Registry of field mappings keyed by (source shape, destination shape).

    Example:
        registry = FieldMappingRegistry()
        registry.register(
            MatterActivityUserDto,
            MatterActivityUser,
            [
                MappingEntry("createdAt", ("created_at",)),
                MappingEntry("userName", ("user.name",)),
            ],
        )
        registry.freeze()

        entry = registry.resolve(MatterActivityUserDto, MatterActivityUser, "CREATEDAT")
    """

    def __init__(self) -> None:
        self._mappings: dict[tuple[Any, Any], FieldMapping] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> "FieldMappingRegistry":
        """Reject further registrations. Returns self for chaining."""
        self._frozen = True
        logger.info("Field mapping registry frozen", pairs=len(self._mappings))
        return self

    def register(
        self,
        source_shape: Any,
        destination_shape: Any,
        entries: Mapping[str, MappingEntry] | Iterable[MappingEntry],
    ) -> FieldMapping:
        """Register the mapping for a shape pair.

        Re-registering an identical mapping is a no-op. Anything else for an
        already registered pair is a configuration defect.

        Raises:
            MappingConfigurationError: On conflict, or after freeze()
        """
        pair = (source_shape, destination_shape)
        pair_name = f"{_shape_name(source_shape)} -> {_shape_name(destination_shape)}"

        if self._frozen:
            raise MappingConfigurationError(
                f"Cannot register mapping {pair_name}: registry is frozen"
            )

        mapping = FieldMapping(entries)
        existing = self._mappings.get(pair)
        if existing is not None:
            if existing == mapping:
                return existing
            raise MappingConfigurationError(
                f"Conflicting mapping registered for {pair_name}"
            )

        self._mappings[pair] = mapping
        logger.debug("Registered field mapping", pair=pair_name, fields=list(mapping))
        return mapping

    def get_mapping(self, source_shape: Any, destination_shape: Any) -> FieldMapping:
        """Return the mapping for a shape pair.

        Raises:
            MappingConfigurationError: If the pair was never registered
        """
        try:
            return self._mappings[(source_shape, destination_shape)]
        except KeyError:
            raise MappingConfigurationError(
                f"No mapping registered for "
                f"{_shape_name(source_shape)} -> {_shape_name(destination_shape)}"
            ) from None

    def resolve(self, source_shape: Any, destination_shape: Any, field_name: str) -> MappingEntry:
        """Look up one client field.

        Raises:
            FieldMappingNotFoundError: If the field is not mapped
        """
        return self.get_mapping(source_shape, destination_shape).resolve(field_name)

    def validate_all(
        self, source_shape: Any, destination_shape: Any, fields: Iterable[str]
    ) -> None:
        """Check that every field is mapped.

        Raises:
            FieldMappingNotFoundError: Naming the first missing field
        """
        mapping = self.get_mapping(source_shape, destination_shape)
        for name in fields:
            mapping.resolve(name)

    def validate_order_by(
        self, source_shape: Any, destination_shape: Any, order_by: str | None
    ) -> None:
        """Check a raw sort expression, ignoring asc/desc suffixes."""
        # Imported here: sorting depends on this module.
        from adms.query.sorting import parse_order_by

        clauses = parse_order_by(order_by)
        self.validate_all(source_shape, destination_shape, (c.field for c in clauses))

    def __contains__(self, pair: object) -> bool:
        return pair in self._mappings
