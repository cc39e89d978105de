"""Exception hierarchy shared by the query engine and the repositories.

Three families:

- QueryError: the caller sent a bad sort expression, field list or page
  parameter. Always names the offending field/parameter so the HTTP layer
  can answer 400 with something actionable.
- MappingConfigurationError: a defect in how field mappings were registered.
  Raised at startup, never per request.
- RepositoryError: lookups, referential checks and persistence failures.
"""

from typing import Any


class AdmsError(Exception):
    """Base exception for everything raised by this package."""
    pass


# ============================================================================
# CALLER INPUT ERRORS
# ============================================================================


class QueryError(AdmsError):
    """Base exception for invalid query-shaping input.

    Attributes:
        field: Name of the offending field or parameter
    """

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.field = field


class FieldMappingNotFoundError(QueryError):
    """Raised when a client field has no entry in a registered mapping."""

    def __init__(self, field: str, available: Any = ()) -> None:
        available_keys = ", ".join(available)
        message = f"Key mapping for property '{field}' is missing"
        if available_keys:
            message = f"{message}. Available keys: {available_keys}"
        super().__init__(message, field)


class UnknownSortFieldError(FieldMappingNotFoundError):
    """Raised when an orderBy clause names a field that cannot be sorted on.

    Example:
        try:
            keys = compile_sort("shoeSize desc", mapping)
        except UnknownSortFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))
    """
    pass


class UnknownShapeFieldError(QueryError):
    """Raised when a fields list names a field the shape does not expose."""

    def __init__(self, field: str, shape_name: str = "") -> None:
        message = f"Property {field} wasn't found"
        if shape_name:
            message = f"{message} on {shape_name}"
        super().__init__(message, field)


class InvalidPageParameterError(QueryError):
    """Raised when pageNumber or pageSize is below 1."""

    def __init__(self, parameter: str, value: int) -> None:
        super().__init__(f"{parameter} must be greater than 0, got {value}", parameter)
        self.value = value


class InvalidAuditDirectionError(QueryError):
    """Raised when a transfer direction is neither "from" nor "to"."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid audit direction '{value}', expected 'from' or 'to'", "direction")
        self.value = value


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================


class MappingConfigurationError(AdmsError):
    """Raised when field mappings are registered inconsistently.

    Two registrations for the same (source, destination) pair with different
    entries, an empty destination list, or registering after the registry
    was frozen. These are programming errors and surface at process start.
    """
    pass


# ============================================================================
# REPOSITORY ERRORS
# ============================================================================


class RepositoryError(AdmsError):
    """Base exception for all repository operations."""
    pass


class NotFoundError(RepositoryError):
    """Raised when a requested entity is not found.

    Example:
        try:
            matter = await repo.get_or_404(matter_id)
        except NotFoundError:
            raise HTTPException(status_code=404, detail="Matter not found")
    """
    pass


class ReferentialIntegrityError(RepositoryError):
    """Raised when an audit record references a subject, activity or user that does not exist.

    Attributes:
        entity: Name of the missing entity type (e.g. "Matter")
        entity_id: Identifier that failed the existence check
    """

    def __init__(self, entity: str, entity_id: Any) -> None:
        super().__init__(f"{entity} with id {entity_id} does not exist")
        self.entity = entity
        self.entity_id = entity_id


class PersistenceError(RepositoryError):
    """Raised when the underlying store fails to read or commit.

    Not retried here; retry policy belongs to the database driver/pool.
    """
    pass


class ConflictError(PersistenceError):
    """Raised when a write violates a unique constraint."""
    pass
