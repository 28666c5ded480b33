"""Repository layer. All functions take a TenantContext first; guard raises if tenant is None/empty.

RULE: Repo is the ONLY place allowed to run DB reads/writes (session.execute, get_db).
All tenant-scoped queries MUST use tenant_filters (select_*_for_tenant / tenant_where).

GUARD: Every function MUST call require_tenant_id(ctx.tenant_id) before any DB access.
Mutations are conditional on the caller's expected version (UPDATE ... WHERE version = :expected);
zero affected rows means VersionConflict (or not found). No retries here.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel
from sqlalchemy import delete, inspect as sa_inspect, update
from sqlalchemy.exc import DataError, IntegrityError
from sqlalchemy.orm import Session

from apps.universal_api.config import config
from apps.universal_api.db import get_db
from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.models.entity import Entity
from apps.universal_api.repositories.tenant_filters import (
    select_dynamic_data_for_tenant,
    select_entity_for_tenant,
    tenant_where,
)
from apps.universal_api.schemas.responses import BulkCreateResult, BulkError, EntityRead, FieldRead
from apps.universal_api.services.errors import (
    DuplicateField,
    EntityNotFound,
    FieldNotFound,
    InvalidHierarchy,
    InvalidPatch,
    MissingRequiredField,
    UniversalAPIError,
    VersionConflict,
)
from apps.universal_api.services.query_translator import build_entity_query, build_field_query
from apps.universal_api.services.record_builder import (
    ENTITY_LENGTHS,
    FIELD_LENGTHS,
    as_payload,
    build_entity,
    build_field,
    check_lengths,
    missing_fields,
    normalize_tags,
    resolve_field_value,
)
from apps.universal_api.services.tenant_context import TenantContext
from apps.universal_api.services.tenant_guard import TenantRequiredError, require_tenant_id
from apps.universal_api.services.validator import validate_entity, validate_field
from apps.universal_api.services.value_codec import decode_value, normalize_field_type, value_columns
from apps.universal_api.services.versioning import check_version, stamp_update

logger = logging.getLogger(__name__)

ENTITY_PATCHABLE = frozenset(
    {
        "entity_type",
        "entity_name",
        "smart_code",
        "entity_code",
        "entity_description",
        "status",
        "smart_code_status",
        "parent_entity_id",
        "metadata",
        "business_rules",
        "tags",
        "ai_confidence",
        "ai_insights",
        "ai_classification",
        "validation_rules",
    }
)
ENTITY_REQUIRED_ON_PATCH = ("entity_type", "entity_name", "smart_code")

FIELD_PATCHABLE = frozenset(
    {
        "field_type",
        "value",
        "smart_code",
        "field_order",
        "is_required",
        "is_searchable",
        "is_system_field",
        "smart_code_status",
        "validation_rules",
        "ai_confidence",
        "ai_insights",
        "ai_enhanced_value",
    }
)
# Flags/config that are not nullable on the table: None in a patch means "leave unchanged".
FIELD_NOT_NULL = frozenset({"smart_code", "field_order", "is_required", "is_searchable", "is_system_field", "smart_code_status"})

UNIQUE_FIELD_CONSTRAINT = "uq_core_dynamic_data_org_entity_field"

__all__ = [
    "TenantRequiredError",
    "create_entity",
    "get_entity",
    "query_entities",
    "update_entity",
    "delete_entity",
    "bulk_create_entities",
    "create_field",
    "get_field",
    "query_fields",
    "update_field",
    "revalidate_field",
    "delete_field",
    "bulk_create_fields",
    "get_entity_fields_map",
]


def _row_dict(obj: Any) -> dict[str, Any]:
    """ORM row -> {attribute_name: value} for every mapped column."""
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(obj).mapper.column_attrs}


def _load_entity(session: Session, tenant_id: str, entity_id: str) -> Entity:
    obj = session.scalars(select_entity_for_tenant(tenant_id).where(Entity.id == entity_id)).one_or_none()
    if obj is None:
        raise EntityNotFound(entity_id)
    return obj


def _load_field(session: Session, tenant_id: str, field_id: str) -> DynamicData:
    obj = session.scalars(select_dynamic_data_for_tenant(tenant_id).where(DynamicData.id == field_id)).one_or_none()
    if obj is None:
        raise FieldNotFound(field_id)
    return obj


def _check_parent(session: Session, tenant_id: str, entity_id: str, parent_id: str) -> None:
    """Parent must exist in the same tenant and must not have entity_id among its ancestors.
    Dangling ancestors above the direct parent end the walk."""
    if parent_id == entity_id:
        raise InvalidHierarchy("Entity cannot be its own parent")
    seen = {entity_id}
    current: str | None = parent_id
    for depth in range(config.MAX_HIERARCHY_DEPTH):
        if current in seen:
            raise InvalidHierarchy(f"parent_entity_id {parent_id} would create a cycle")
        seen.add(current)
        stmt = (
            select_entity_for_tenant(tenant_id)
            .where(Entity.id == current)
            .with_only_columns(Entity.parent_entity_id)
        )
        row = session.execute(stmt).first()
        if row is None:
            if depth == 0:
                raise InvalidHierarchy(f"Parent entity {parent_id} not found in organization")
            return
        current = row[0]
        if current is None:
            return
    raise InvalidHierarchy(f"Hierarchy deeper than {config.MAX_HIERARCHY_DEPTH} levels")


def _raise_on_stale(session: Session, select_stmt: Any, record_id: str, expected: int, not_found: type) -> None:
    """Called after a conditional write hit zero rows: distinguish not-found from version conflict."""
    row = session.execute(select_stmt).first()
    if row is None:
        raise not_found(record_id)
    raise VersionConflict(record_id, expected, row[0])


# ---------------------------------------------------------------------------
# Dynamic field helpers (shared by entity and field operations)
# ---------------------------------------------------------------------------


def _is_unique_violation(e: IntegrityError) -> bool:
    return UNIQUE_FIELD_CONSTRAINT in str(e.orig)


def _entity_field_rows(session: Session, tenant_id: str, entity_id: str) -> list[DynamicData]:
    stmt = (
        select_dynamic_data_for_tenant(tenant_id)
        .where(DynamicData.entity_id == entity_id)
        .order_by(DynamicData.field_order, DynamicData.field_name)
    )
    return list(session.scalars(stmt).all())


def _sibling_values(session: Session, tenant_id: str, entity_id: str, exclude_id: str | None = None) -> dict[str, Any]:
    return {f.field_name: decode_value(f) for f in _entity_field_rows(session, tenant_id, entity_id) if f.id != exclude_id}


def _others(values: Mapping[str, Any], field_name: str) -> dict[str, Any]:
    return {k: v for k, v in values.items() if k != field_name}


def _field_record(ctx: TenantContext, entity_id: str, request: Any, order: int | None = None) -> dict[str, Any]:
    payload = as_payload(request)
    payload["organization_id"] = ctx.organization_id
    payload["entity_id"] = entity_id
    if order is not None and payload.get("field_order") is None:
        payload["field_order"] = order
    return build_field(payload, ctx.actor_id)


def _insert_fields(
    session: Session,
    entity_id: str,
    records: Sequence[dict[str, Any]],
    existing: Mapping[str, Any],
) -> list[DynamicData]:
    """Insert built field records on one entity. existing maps the entity's other field names to values;
    each record is validated against those plus the rest of the batch."""
    values = dict(existing)
    for record in records:
        if record["field_name"] in values:
            raise DuplicateField(entity_id, record["field_name"])
        values[record["field_name"]] = decode_value(record)
    created = []
    for record in records:
        report = validate_field(record, _others(values, record["field_name"]))
        record["validation_status"] = report.status
        record["validation_messages"] = report.messages
        obj = DynamicData(**record)
        session.add(obj)
        try:
            session.flush()
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateField(entity_id, record["field_name"]) from e
            raise
        created.append(obj)
    return created


def _field_patch_values(payload: dict[str, Any], current: DynamicData) -> dict[str, Any]:
    """Patch -> column values. A new value and/or field_type rewrites all six value columns."""
    payload.pop("version", None)
    bad = set(payload) - FIELD_PATCHABLE
    if bad:
        raise InvalidPatch(bad)
    if "smart_code" in payload and payload["smart_code"] is not None:
        blank = missing_fields(payload, ["smart_code"])
        if blank:
            raise MissingRequiredField(blank)
    values = {
        k: v
        for k, v in payload.items()
        if k not in ("value", "field_type") and not (k in FIELD_NOT_NULL and v is None)
    }
    new_type = payload.get("field_type")
    new_value = payload.get("value")
    if new_type is not None or new_value is not None:
        field_type = normalize_field_type(new_type) if new_type is not None else current.field_type
        value = new_value if new_value is not None else decode_value(current)
        values["field_type"] = field_type
        values.update(value_columns(field_type, value))
    return values


def _upsert_patch(item: Mapping[str, Any], current: DynamicData) -> dict[str, Any]:
    """Create-shaped item for an existing field name -> patch. A value may arrive in `value` or in the
    field_value_* column of the item's field_type (the stored type when the item names none)."""
    patch = {k: v for k, v in item.items() if k in FIELD_PATCHABLE}
    value = resolve_field_value({**item, "field_type": item.get("field_type") or current.field_type})
    if value is not None:
        patch["value"] = value
    return patch


def _write_field(
    session: Session,
    ctx: TenantContext,
    tenant_id: str,
    current: DynamicData,
    values: dict[str, Any],
    siblings: Mapping[str, Any],
    expected_version: int,
) -> None:
    """Revalidate and write values onto current, conditional on expected_version."""
    report = validate_field({**_row_dict(current), **values}, siblings)
    values["validation_status"] = report.status
    values["validation_messages"] = report.messages
    stamped = stamp_update(values, ctx.actor_id, expected_version)
    check_lengths(stamped, FIELD_LENGTHS)
    stmt = (
        update(DynamicData)
        .where(
            tenant_where(DynamicData, tenant_id),
            DynamicData.id == current.id,
            DynamicData.version == expected_version,
        )
        .values({getattr(DynamicData, k): v for k, v in stamped.items()})
        .execution_options(synchronize_session=False)
    )
    if session.execute(stmt).rowcount == 0:
        logger.warning("update_field conflict tenant_id=%s field_id=%s expected=%s", tenant_id, current.id, expected_version)
        _raise_on_stale(
            session,
            select_dynamic_data_for_tenant(tenant_id)
            .where(DynamicData.id == current.id)
            .with_only_columns(DynamicData.version),
            current.id,
            expected_version,
            FieldNotFound,
        )
    session.refresh(current)


def _apply_field_changes(
    session: Session,
    ctx: TenantContext,
    tenant_id: str,
    entity_id: str,
    upserts: Sequence[Any],
    removals: Sequence[str],
) -> list[FieldRead]:
    """Delete fields named in removals, then upsert by field_name: an existing name is patched (version + 1),
    a new name is created. Runs in the caller's transaction; returns the entity's fields afterwards."""
    items = [as_payload(item) for item in upserts]
    blank = [i for i, item in enumerate(items) if missing_fields(item, ["field_name"])]
    if blank:
        raise MissingRequiredField(["field_name"])
    names = [str(item["field_name"]).strip() for item in items]
    for i, name in enumerate(names):
        if name in names[:i]:
            raise DuplicateField(entity_id, name)
    clash = set(names) & set(removals)
    if clash:
        raise InvalidPatch(clash, "cannot be both upserted and removed")

    current = {f.field_name: f for f in _entity_field_rows(session, tenant_id, entity_id)}
    removed = [current.pop(name).id for name in dict.fromkeys(removals) if name in current]
    if removed:
        session.execute(
            delete(DynamicData)
            .where(tenant_where(DynamicData, tenant_id), DynamicData.id.in_(removed))
            .execution_options(synchronize_session=False)
        )

    patches: dict[str, dict[str, Any]] = {}
    new_records = []
    for item, name in zip(items, names):
        item["field_name"] = name
        if name in current:
            patches[name] = _field_patch_values(_upsert_patch(item, current[name]), current[name])
        else:
            new_records.append(_field_record(ctx, entity_id, item))

    # Field values as they will be once every change lands
    values = {name: decode_value({**_row_dict(f), **patches.get(name, {})}) for name, f in current.items()}
    final = {**values, **{r["field_name"]: decode_value(r) for r in new_records}}
    for name, patch in patches.items():
        _write_field(session, ctx, tenant_id, current[name], patch, _others(final, name), current[name].version)
    _insert_fields(session, entity_id, new_records, values)
    logger.info(
        "entity fields changed tenant_id=%s entity_id=%s updated=%d created=%d removed=%d",
        tenant_id,
        entity_id,
        len(patches),
        len(new_records),
        len(removed),
    )
    return [FieldRead.model_validate(f) for f in _entity_field_rows(session, tenant_id, entity_id)]


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


def create_entity(
    ctx: TenantContext,
    request: BaseModel | Mapping[str, Any],
    fields: Sequence[BaseModel | Mapping[str, Any]] | None = None,
) -> EntityRead:
    """Build, validate and insert one entity. organization_id comes from ctx only.

    fields (or request["fields"]) are created on the new entity in the same transaction, so a failing
    field leaves nothing behind; the result then carries the created fields. A field without
    field_order gets its position in the list.
    Raises MissingRequiredField (every missing name, organization_id included), InvalidHierarchy,
    DuplicateField, TypeMismatch, UnknownFieldType, ValueTooLong.
    """
    payload = as_payload(request)
    nested = payload.pop("fields", None)
    if fields is None:
        fields = nested
    payload["organization_id"] = ctx.organization_id
    record = build_entity(payload, ctx.actor_id)
    tenant_id = require_tenant_id(record["organization_id"])
    field_records = [_field_record(ctx, record["id"], item, order=i) for i, item in enumerate(fields or [])]
    report = validate_entity(record)
    record["validation_status"] = report.status
    record["validation_messages"] = report.messages
    if report.warnings:
        logger.info("create_entity tenant_id=%s warnings=%s", tenant_id, report.warnings)
    with get_db() as session:
        if record["parent_entity_id"]:
            _check_parent(session, tenant_id, record["id"], record["parent_entity_id"])
        obj = Entity(**record)
        session.add(obj)
        session.flush()
        result = EntityRead.model_validate(obj)
        if fields is not None:
            created = _insert_fields(session, record["id"], field_records, {})
            result.fields = [FieldRead.model_validate(f) for f in created]
    logger.info(
        "create_entity tenant_id=%s entity_id=%s entity_type=%s validation_status=%s fields=%d",
        tenant_id,
        result.id,
        result.entity_type,
        result.validation_status,
        len(field_records),
    )
    return result


def _read_entities(session: Session, tenant_id: str, objs: Sequence[Entity], include_fields: bool) -> list[EntityRead]:
    results = [EntityRead.model_validate(obj) for obj in objs]
    if not include_fields or not results:
        return results
    grouped: dict[str, list[FieldRead]] = {r.id: [] for r in results}
    stmt = (
        select_dynamic_data_for_tenant(tenant_id)
        .where(DynamicData.entity_id.in_(list(grouped)))
        .order_by(DynamicData.field_order, DynamicData.field_name)
    )
    for f in session.scalars(stmt).all():
        grouped[f.entity_id].append(FieldRead.model_validate(f))
    for r in results:
        r.fields = grouped[r.id]
    return results


def get_entity(ctx: TenantContext, entity_id: str, include_fields: bool = False) -> EntityRead:
    """Return one entity of the caller's tenant, plus its dynamic fields in field_order when include_fields.
    Raises EntityNotFound (also for other tenants' ids)."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    with get_db() as session:
        return _read_entities(session, tenant_id, [_load_entity(session, tenant_id, entity_id)], include_fields)[0]


def query_entities(
    ctx: TenantContext,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
    offset: int = 0,
    order_by: str | None = None,
    include_fields: bool = False,
) -> list[EntityRead]:
    """Translate filters and return matching entities of ctx's tenant only. Raises InvalidFilter.
    include_fields attaches each entity's dynamic fields with one extra query for the page."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    stmt = build_entity_query(tenant_id, filters, limit=limit, offset=offset, order_by=order_by)
    with get_db() as session:
        return _read_entities(session, tenant_id, session.scalars(stmt).all(), include_fields)


def _entity_patch_values(payload: dict[str, Any]) -> dict[str, Any]:
    payload.pop("version", None)
    bad = set(payload) - ENTITY_PATCHABLE
    if bad:
        raise InvalidPatch(bad)
    blank = missing_fields(payload, [k for k in ENTITY_REQUIRED_ON_PATCH if k in payload])
    if blank:
        raise MissingRequiredField(blank)
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key == "tags":
            values["tags"] = normalize_tags(value)
        elif key == "metadata":
            values["metadata_"] = value
        elif key in ("status", "smart_code_status"):
            if value is not None:
                values[key] = value
        else:
            values[key] = value.strip() if isinstance(value, str) and key in ENTITY_REQUIRED_ON_PATCH else value
    return values


def update_entity(
    ctx: TenantContext,
    entity_id: str,
    expected_version: int,
    patch: BaseModel | Mapping[str, Any],
    fields: Sequence[BaseModel | Mapping[str, Any]] | None = None,
    remove_fields: Sequence[str] | None = None,
) -> EntityRead:
    """Apply patch if the stored version equals expected_version; version += 1, audit stamped,
    validation re-run. Raises VersionConflict, EntityNotFound, InvalidPatch, InvalidHierarchy.

    fields / remove_fields (also accepted inside patch) upsert dynamic fields by field_name and delete
    fields by name in the same transaction; the entity version guards the whole change and the result
    carries the entity's fields afterwards.
    """
    tenant_id = require_tenant_id(ctx.tenant_id)
    payload = as_payload(patch)
    nested_fields = payload.pop("fields", None)
    nested_removals = payload.pop("remove_fields", None)
    fields = nested_fields if fields is None else fields
    remove_fields = nested_removals if remove_fields is None else remove_fields
    values = _entity_patch_values(payload)
    with get_db() as session:
        current = _load_entity(session, tenant_id, entity_id)
        check_version(entity_id, current.version, expected_version)
        if values.get("parent_entity_id"):
            _check_parent(session, tenant_id, entity_id, values["parent_entity_id"])
        report = validate_entity({**_row_dict(current), **values})
        values["validation_status"] = report.status
        values["validation_messages"] = report.messages
        stamped = stamp_update(values, ctx.actor_id, expected_version)
        check_lengths(stamped, ENTITY_LENGTHS)
        stmt = (
            update(Entity)
            .where(tenant_where(Entity, tenant_id), Entity.id == entity_id, Entity.version == expected_version)
            .values({getattr(Entity, k): v for k, v in stamped.items()})
            .execution_options(synchronize_session=False)
        )
        if session.execute(stmt).rowcount == 0:
            logger.warning("update_entity conflict tenant_id=%s entity_id=%s expected=%s", tenant_id, entity_id, expected_version)
            _raise_on_stale(
                session,
                select_entity_for_tenant(tenant_id).where(Entity.id == entity_id).with_only_columns(Entity.version),
                entity_id,
                expected_version,
                EntityNotFound,
            )
        field_rows = None
        if fields is not None or remove_fields is not None:
            field_rows = _apply_field_changes(session, ctx, tenant_id, entity_id, fields or [], remove_fields or [])
        session.refresh(current)
        result = EntityRead.model_validate(current)
        result.fields = field_rows
    logger.info("update_entity tenant_id=%s entity_id=%s version=%s", tenant_id, entity_id, result.version)
    return result


def delete_entity(ctx: TenantContext, entity_id: str, expected_version: int, hard: bool = False) -> dict[str, Any]:
    """Soft delete (status='deleted', versioned like any update) or hard delete (row removed,
    dynamic fields cascade). Both are conditional on expected_version."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    if not hard:
        result = update_entity(ctx, entity_id, expected_version, {"status": "deleted"})
        return {"id": entity_id, "deleted": True, "hard": False, "version": result.version}
    with get_db() as session:
        stmt = delete(Entity).where(
            tenant_where(Entity, tenant_id), Entity.id == entity_id, Entity.version == expected_version
        )
        if session.execute(stmt).rowcount == 0:
            _raise_on_stale(
                session,
                select_entity_for_tenant(tenant_id).where(Entity.id == entity_id).with_only_columns(Entity.version),
                entity_id,
                expected_version,
                EntityNotFound,
            )
    logger.info("delete_entity tenant_id=%s entity_id=%s hard=True", tenant_id, entity_id)
    return {"id": entity_id, "deleted": True, "hard": True, "version": None}


def _storage_message(e: DataError | IntegrityError) -> str:
    lines = str(e.orig).strip().splitlines()
    return lines[0] if lines else type(e.orig).__name__


def _bulk(items: Sequence[Any], create: Any, label: str, tenant_id: str | None) -> BulkCreateResult:
    """Run create per item. Structural errors and rows the database refuses are reported per index;
    each item has its own transaction, so a failure never undoes earlier items."""
    result = BulkCreateResult()
    for index, item in enumerate(items):
        try:
            result.created.append(create(item))
        except UniversalAPIError as e:
            result.errors.append(
                BulkError(index=index, error=e.code, message=str(e), fields=list(getattr(e, "fields", []) or []))
            )
        except (DataError, IntegrityError) as e:
            logger.warning("%s tenant_id=%s index=%d rejected by database: %s", label, tenant_id, index, e.orig)
            result.errors.append(
                BulkError(index=index, error="storage_rejected", message=_storage_message(e))
            )
    if result.errors:
        logger.warning(
            "%s tenant_id=%s partial: created=%d failed=%d", label, tenant_id, len(result.created), len(result.errors)
        )
    return result


def bulk_create_entities(ctx: TenantContext, requests: Sequence[BaseModel | Mapping[str, Any]]) -> BulkCreateResult:
    """Sequence of independent create_entity calls, one transaction each. Partial success is kept:
    failures are reported per index, already-created records are not rolled back."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    return _bulk(requests, lambda r: create_entity(ctx, r), "bulk_create_entities", tenant_id)


# ---------------------------------------------------------------------------
# Dynamic fields
# ---------------------------------------------------------------------------


def create_field(ctx: TenantContext, entity_id: str, request: BaseModel | Mapping[str, Any]) -> FieldRead:
    """Attach one typed field to an existing entity of ctx's tenant.
    Raises MissingRequiredField, UnknownFieldType, TypeMismatch, EntityNotFound, DuplicateField, ValueTooLong."""
    record = _field_record(ctx, entity_id, request)
    tenant_id = require_tenant_id(record["organization_id"])
    with get_db() as session:
        _load_entity(session, tenant_id, record["entity_id"])
        siblings = _sibling_values(session, tenant_id, record["entity_id"])
        obj = _insert_fields(session, entity_id, [record], siblings)[0]
        result = FieldRead.model_validate(obj)
    logger.info(
        "create_field tenant_id=%s entity_id=%s field_name=%s field_type=%s",
        tenant_id,
        entity_id,
        result.field_name,
        result.field_type,
    )
    return result


def get_field(ctx: TenantContext, field_id: str) -> FieldRead:
    tenant_id = require_tenant_id(ctx.tenant_id)
    with get_db() as session:
        return FieldRead.model_validate(_load_field(session, tenant_id, field_id))


def query_fields(
    ctx: TenantContext,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
    offset: int = 0,
    order_by: str | None = None,
) -> list[FieldRead]:
    """Translate filters and return matching dynamic fields of ctx's tenant only. Raises InvalidFilter."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    stmt = build_field_query(tenant_id, filters, limit=limit, offset=offset, order_by=order_by)
    with get_db() as session:
        return [FieldRead.model_validate(obj) for obj in session.scalars(stmt).all()]


def update_field(
    ctx: TenantContext,
    field_id: str,
    expected_version: int,
    patch: BaseModel | Mapping[str, Any],
) -> FieldRead:
    """Replace value/type, reorder, toggle flags or rules, conditional on expected_version.
    The field is revalidated on every update. Raises VersionConflict, FieldNotFound, TypeMismatch,
    UnknownFieldType, InvalidPatch, ValueTooLong."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    payload = as_payload(patch)
    with get_db() as session:
        current = _load_field(session, tenant_id, field_id)
        check_version(field_id, current.version, expected_version)
        values = _field_patch_values(payload, current)
        siblings = _sibling_values(session, tenant_id, current.entity_id, exclude_id=field_id)
        _write_field(session, ctx, tenant_id, current, values, siblings, expected_version)
        result = FieldRead.model_validate(current)
    logger.info("update_field tenant_id=%s field_id=%s version=%s", tenant_id, field_id, result.version)
    return result


def revalidate_field(ctx: TenantContext, field_id: str, expected_version: int) -> FieldRead:
    """Re-run the field's validation rules; recorded as a new version like any other mutation."""
    return update_field(ctx, field_id, expected_version, {})


def delete_field(ctx: TenantContext, field_id: str, expected_version: int) -> dict[str, Any]:
    tenant_id = require_tenant_id(ctx.tenant_id)
    with get_db() as session:
        stmt = delete(DynamicData).where(
            tenant_where(DynamicData, tenant_id), DynamicData.id == field_id, DynamicData.version == expected_version
        )
        if session.execute(stmt).rowcount == 0:
            _raise_on_stale(
                session,
                select_dynamic_data_for_tenant(tenant_id)
                .where(DynamicData.id == field_id)
                .with_only_columns(DynamicData.version),
                field_id,
                expected_version,
                FieldNotFound,
            )
    logger.info("delete_field tenant_id=%s field_id=%s", tenant_id, field_id)
    return {"id": field_id, "deleted": True, "hard": True, "version": None}


def bulk_create_fields(
    ctx: TenantContext,
    entity_id: str,
    requests: Sequence[BaseModel | Mapping[str, Any]],
) -> BulkCreateResult:
    """Sequence of independent create_field calls; partial success is kept and reported per index."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    return _bulk(requests, lambda r: create_field(ctx, entity_id, r), "bulk_create_fields", tenant_id)


def get_entity_fields_map(ctx: TenantContext, entity_id: str) -> dict[str, Any]:
    """Decoded {field_name: value} view of an entity's dynamic data, in field_order."""
    tenant_id = require_tenant_id(ctx.tenant_id)
    with get_db() as session:
        _load_entity(session, tenant_id, entity_id)
        return {f.field_name: decode_value(f) for f in _entity_field_rows(session, tenant_id, entity_id)}
