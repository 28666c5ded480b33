"""Polymorphic value storage: field_type -> exactly one field_value_* column.

Pure functions, no DB access. encode_value() is the only way values enter core_dynamic_data.
"""

import json
import math
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlparse

from apps.universal_api.services.errors import TypeMismatch, UnknownFieldType

FIELD_TYPE_COLUMNS: dict[str, str] = {
    "text": "field_value_text",
    "number": "field_value_number",
    "boolean": "field_value_boolean",
    "date": "field_value_date",
    "json": "field_value_json",
    "file_url": "field_value_file_url",
}

FIELD_TYPES = frozenset(FIELD_TYPE_COLUMNS)
VALUE_COLUMNS = tuple(FIELD_TYPE_COLUMNS.values())

_TRUE = frozenset({"true", "yes", "1", "on", "y", "t"})
_FALSE = frozenset({"false", "no", "0", "off", "n", "f"})
FILE_URL_SCHEMES = frozenset({"http", "https", "s3", "gs", "file"})


def column_for(field_type: Any) -> str:
    """Return the storage column for field_type. Raises UnknownFieldType."""
    if not isinstance(field_type, str) or field_type.strip().lower() not in FIELD_TYPE_COLUMNS:
        raise UnknownFieldType(field_type)
    return FIELD_TYPE_COLUMNS[field_type.strip().lower()]


def _coerce_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float, Decimal)):
        try:
            return str(value)
        except ValueError:
            raise TypeMismatch("text", value, "number too large to render") from None
    raise TypeMismatch("text", value)


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeMismatch("number", value, "booleans are not numbers")
    if isinstance(value, (int, float, Decimal)):
        try:
            num = float(value)
        except OverflowError:
            raise TypeMismatch("number", value, "must be finite") from None
    elif isinstance(value, str):
        try:
            num = float(Decimal(value.strip()))
        except (InvalidOperation, ValueError):
            raise TypeMismatch("number", value, "not numeric") from None
    else:
        raise TypeMismatch("number", value)
    if math.isnan(num) or math.isinf(num):
        raise TypeMismatch("number", value, "must be finite")
    return num


def _coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in _TRUE:
            return True
        if v in _FALSE:
            return False
    raise TypeMismatch("boolean", value)


def _coerce_date(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        s = value.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            raise TypeMismatch("date", value, "expected ISO-8601") from None
    else:
        raise TypeMismatch("date", value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _coerce_json(value: Any) -> Any:
    if not isinstance(value, (dict, list, str, int, float, bool)):
        raise TypeMismatch("json", value)
    try:
        json.dumps(value, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise TypeMismatch("json", value, str(e)) from None
    return value


def _coerce_file_url(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise TypeMismatch("file_url", value)
    url = value.strip()
    p = urlparse(url)
    if p.scheme.lower() not in FILE_URL_SCHEMES or not (p.netloc or p.path):
        raise TypeMismatch("file_url", value, f"scheme must be one of {sorted(FILE_URL_SCHEMES)}")
    return url


_COERCERS = {
    "text": _coerce_text,
    "number": _coerce_number,
    "boolean": _coerce_boolean,
    "date": _coerce_date,
    "json": _coerce_json,
    "file_url": _coerce_file_url,
}


def normalize_field_type(field_type: Any) -> str:
    column_for(field_type)
    return field_type.strip().lower()


def encode_value(field_type: Any, value: Any) -> tuple[str, Any]:
    """Return (column_name, coerced_value) for a declared field_type.
    Raises UnknownFieldType for undeclared types and TypeMismatch when value cannot be coerced
    (None is never a valid field value)."""
    ft = normalize_field_type(field_type)
    if value is None:
        raise TypeMismatch(ft, value, "value is required")
    return FIELD_TYPE_COLUMNS[ft], _COERCERS[ft](value)


def value_columns(field_type: Any, value: Any) -> dict[str, Any]:
    """All six value columns: the target column populated, every other column None."""
    column, coerced = encode_value(field_type, value)
    cols = dict.fromkeys(VALUE_COLUMNS)
    cols[column] = coerced
    return cols


def decode_value(record: Any) -> Any:
    """Read the value of a dynamic field record (ORM object or dict) from its field_type column."""
    get = record.get if isinstance(record, dict) else lambda k: getattr(record, k, None)
    return get(column_for(get("field_type")))


def populated_columns(record: Any) -> list[str]:
    """Names of the value columns that are non-null on record."""
    get = record.get if isinstance(record, dict) else lambda k: getattr(record, k, None)
    return [c for c in VALUE_COLUMNS if get(c) is not None]
