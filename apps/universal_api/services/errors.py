"""Structural errors raised by the universal entity layer.

Business-rule failures are NOT errors: the validator returns a ValidationReport
and the record is stored with validation_status='invalid'.
"""

from collections.abc import Iterable
from typing import Any


def _short_repr(value: Any, limit: int = 120) -> str:
    try:
        text = repr(value)
    except ValueError:
        # int beyond sys.get_int_max_str_digits
        return f"<{type(value).__name__}>"
    return text if len(text) <= limit else text[: limit - 3] + "..."


class UniversalAPIError(Exception):
    """Base class. `code` is a stable machine-readable identifier for API responses."""

    code = "universal_api_error"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": str(self)}


class MissingRequiredField(UniversalAPIError):
    """One or more mandatory fields are absent. All missing names are reported together."""

    code = "missing_required_field"

    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required field(s): {', '.join(self.fields)}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields}


class UnknownFieldType(UniversalAPIError):
    code = "unknown_field_type"

    def __init__(self, field_type: Any):
        self.field_type = field_type
        super().__init__(f"Unknown field_type: {field_type!r}")


class TypeMismatch(UniversalAPIError):
    """Value cannot be coerced to the declared field_type."""

    code = "type_mismatch"

    def __init__(self, field_type: str, value: Any, reason: str | None = None):
        self.field_type = field_type
        self.value = value
        msg = f"Value {_short_repr(value)} cannot be stored as {field_type}"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class InvalidFilter(UniversalAPIError):
    code = "invalid_filter"

    def __init__(self, reason: str, field: str | None = None):
        self.field = field
        super().__init__(f"Invalid filter on {field!r}: {reason}" if field else f"Invalid filter: {reason}")


class InvalidHierarchy(UniversalAPIError):
    """parent_entity_id points at itself, at another tenant's entity, or would close a cycle."""

    code = "invalid_hierarchy"


class VersionConflict(UniversalAPIError):
    """Optimistic concurrency check failed. Caller must re-read and retry."""

    code = "version_conflict"

    def __init__(self, record_id: Any, expected: int, actual: int | None):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Version conflict on {record_id}: expected {expected}, stored {actual}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "expected_version": self.expected, "current_version": self.actual}


class RecordNotFound(UniversalAPIError):
    code = "not_found"

    def __init__(self, record_id: Any):
        self.record_id = record_id
        super().__init__(f"{self.__class__.__name__}: {record_id}")


class EntityNotFound(RecordNotFound):
    code = "entity_not_found"


class FieldNotFound(RecordNotFound):
    code = "field_not_found"


class DuplicateField(UniversalAPIError):
    """field_name already exists on the entity."""

    code = "duplicate_field"

    def __init__(self, entity_id: Any, field_name: str):
        self.entity_id = entity_id
        self.field_name = field_name
        super().__init__(f"Field {field_name!r} already exists on entity {entity_id}")


class InvalidPatch(UniversalAPIError):
    """Update payload touches an immutable or unknown column."""

    code = "invalid_patch"

    def __init__(self, fields: Iterable[str], reason: str = "cannot be updated"):
        self.fields = sorted(fields)
        super().__init__(f"Field(s) {', '.join(self.fields)} {reason}")

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields}


class ValueTooLong(UniversalAPIError):
    """A string exceeds the length of the column it is stored in."""

    code = "value_too_long"

    def __init__(self, limits: dict[str, int]):
        self.limits = dict(sorted(limits.items()))
        self.fields = list(self.limits)
        super().__init__("Too long: " + ", ".join(f"{name} (max {n})" for name, n in self.limits.items()))

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "fields": self.fields, "max_length": self.limits}
