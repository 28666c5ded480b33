"""Build complete, storable records from partial creation requests.

Pure: no DB access. The repo persists what these functions return.
All missing required fields are reported together in one MissingRequiredField.
"""

import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.models.entity import Entity
from apps.universal_api.services.errors import MissingRequiredField, TypeMismatch, ValueTooLong
from apps.universal_api.services.value_codec import FIELD_TYPE_COLUMNS, VALUE_COLUMNS, normalize_field_type, value_columns

ENTITY_REQUIRED = ("organization_id", "entity_type", "entity_name", "smart_code")
FIELD_REQUIRED = ("organization_id", "entity_id", "field_name", "field_type", "smart_code", "value")

DEFAULT_STATUS = "active"
DEFAULT_SMART_CODE_STATUS = "active"
DEFAULT_VALIDATION_STATUS = "pending"

ENTITY_OPTIONAL = (
    "entity_code",
    "entity_description",
    "parent_entity_id",
    "metadata",
    "business_rules",
    "ai_confidence",
    "ai_insights",
    "ai_classification",
    "validation_rules",
)
FIELD_OPTIONAL = (
    "ai_confidence",
    "ai_insights",
    "ai_enhanced_value",
    "validation_rules",
)


# Reference ids are checked against existing rows instead (not found beats too long)
_UNCHECKED_LENGTH = frozenset({"id", "entity_id", "parent_entity_id"})


def _string_limits(model: Any) -> dict[str, int]:
    return {
        c.key: c.type.length
        for c in model.__table__.columns
        if getattr(c.type, "length", None) and c.key not in _UNCHECKED_LENGTH
    }


ENTITY_LENGTHS = _string_limits(Entity)
FIELD_LENGTHS = _string_limits(DynamicData)


def check_lengths(values: Mapping[str, Any], limits: Mapping[str, int]) -> None:
    """Raise ValueTooLong naming every string in values longer than its column allows."""
    over = {k: limits[k] for k, v in values.items() if k in limits and isinstance(v, str) and len(v) > limits[k]}
    if over:
        raise ValueTooLong(over)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def as_payload(request: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    """Request model or mapping -> plain dict of the keys the caller actually supplied."""
    if request is None:
        return {}
    if isinstance(request, BaseModel):
        return request.model_dump(exclude_unset=True)
    return dict(request)


def _is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


def missing_fields(payload: Mapping[str, Any], required: Iterable[str]) -> list[str]:
    """Required names that are absent, None or blank strings, in declaration order."""
    return [name for name in required if _is_blank(payload.get(name))]


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Tags are a set: strip, drop blanks, de-duplicate, sort."""
    if not tags:
        return []
    return sorted({str(t).strip() for t in tags if t is not None and str(t).strip()})


def _strip(v: Any) -> Any:
    return v.strip() if isinstance(v, str) else v


def build_entity(payload: Mapping[str, Any], actor_id: str | None = None, now: datetime | None = None) -> dict[str, Any]:
    """Return a full core_entities row (keyed by ORM attribute names; metadata -> metadata_).

    payload must carry organization_id plus the create-request fields.
    Raises MissingRequiredField listing every missing name, ValueTooLong for strings over their column length.
    """
    missing = missing_fields(payload, ENTITY_REQUIRED)
    if missing:
        raise MissingRequiredField(missing)
    now = now or utcnow()
    record: dict[str, Any] = {
        "id": new_id(),
        "organization_id": _strip(payload["organization_id"]),
        "entity_type": _strip(payload["entity_type"]),
        "entity_name": _strip(payload["entity_name"]),
        "smart_code": _strip(payload["smart_code"]),
        "status": payload.get("status") or DEFAULT_STATUS,
        "smart_code_status": payload.get("smart_code_status") or DEFAULT_SMART_CODE_STATUS,
        "tags": normalize_tags(payload.get("tags")),
        "validation_status": DEFAULT_VALIDATION_STATUS,
        "validation_messages": [],
        "created_at": now,
        "updated_at": now,
        "created_by": actor_id,
        "updated_by": actor_id,
        "version": 1,
    }
    for name in ENTITY_OPTIONAL:
        record["metadata_" if name == "metadata" else name] = payload.get(name)
    check_lengths(record, ENTITY_LENGTHS)
    return record


def resolve_field_value(payload: Mapping[str, Any]) -> Any:
    """Value from `value`, else from the field_value_* column matching field_type.
    A value supplied in a column that does not match field_type is a TypeMismatch."""
    field_type = payload.get("field_type")
    explicit = {c: payload.get(c) for c in VALUE_COLUMNS if payload.get(c) is not None}
    if _is_blank(field_type):
        return payload.get("value")
    ft = normalize_field_type(field_type)
    target = FIELD_TYPE_COLUMNS[ft]
    stray = [c for c in explicit if c != target]
    if stray:
        raise TypeMismatch(ft, {c: explicit[c] for c in stray}, f"value supplied in {', '.join(stray)}")
    if payload.get("value") is not None:
        return payload["value"]
    return explicit.get(target)


def build_field(payload: Mapping[str, Any], actor_id: str | None = None, now: datetime | None = None) -> dict[str, Any]:
    """Return a full core_dynamic_data row with exactly one value column populated.

    payload must carry organization_id and entity_id plus the create-request fields.
    Raises MissingRequiredField, UnknownFieldType, TypeMismatch, ValueTooLong.
    """
    resolved = dict(payload)
    if not _is_blank(payload.get("field_type")):
        resolved["value"] = resolve_field_value(payload)
    missing = missing_fields(resolved, FIELD_REQUIRED)
    if missing:
        raise MissingRequiredField(missing)
    field_type = normalize_field_type(resolved["field_type"])
    now = now or utcnow()
    record: dict[str, Any] = {
        "id": new_id(),
        "organization_id": _strip(resolved["organization_id"]),
        "entity_id": _strip(resolved["entity_id"]),
        "field_name": _strip(resolved["field_name"]),
        "field_type": field_type,
        "smart_code": _strip(resolved["smart_code"]),
        "smart_code_status": resolved.get("smart_code_status") or DEFAULT_SMART_CODE_STATUS,
        "field_order": resolved.get("field_order") if resolved.get("field_order") is not None else 0,
        "is_required": bool(resolved.get("is_required")),
        "is_searchable": resolved.get("is_searchable") is not False,
        "is_system_field": bool(resolved.get("is_system_field")),
        "validation_status": DEFAULT_VALIDATION_STATUS,
        "validation_messages": [],
        "created_at": now,
        "updated_at": now,
        "created_by": actor_id,
        "updated_by": actor_id,
        "version": 1,
    }
    record.update(value_columns(field_type, resolved["value"]))
    for name in FIELD_OPTIONAL:
        record[name] = resolved.get(name)
    check_lengths(record, FIELD_LENGTHS)
    return record
