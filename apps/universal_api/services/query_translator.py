"""Structured filter -> tenant-scoped SQLAlchemy Select for core_entities / core_dynamic_data.

Every statement starts from select_*_for_tenant(tenant_id); there is no unscoped entry point.
Predicates combine with AND; an absent key is no constraint.

Filter grammar (keyed by column name):
  scalar                          equality
  [a, b]                          set membership (tags: contains all)
  {"eq": v} {"ne": v}
  {"in": [...]} {"not_in": [...]}
  {"min": a, "max": b} / {"from": a, "to": b}   inclusive range, numbers or dates
  {"contains": "abc"}             case-insensitive substring (text columns)
  {"contains": [...]} {"overlaps": [...]}       array columns (tags)
  {"contains": {...}}             jsonb containment (@>)
  {"path": "a.b", "equals": v}    jsonb nested value (also "in", "contains", "min", "max", "is_null" at the path)
  {"is_null": true|false}
  "search": "free text"           full text over name/code/description (fields: name/text value, searchable only)
"""

from collections.abc import Mapping
from typing import Any

from sqlalchemy import ColumnElement, Float, Select, and_, cast, func, not_, or_
from sqlalchemy.orm import InstrumentedAttribute

from apps.universal_api.config import config
from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.models.entity import Entity
from apps.universal_api.repositories.tenant_filters import select_dynamic_data_for_tenant, select_entity_for_tenant
from apps.universal_api.services.errors import InvalidFilter, TypeMismatch
from apps.universal_api.services.tenant_guard import require_tenant_id
from apps.universal_api.services.value_codec import encode_value

TEXT, NUMBER, DATETIME, BOOL, JSON, ARRAY = "text", "number", "datetime", "bool", "json", "array"

ENTITY_COLUMNS: dict[str, tuple[InstrumentedAttribute, str]] = {
    "id": (Entity.id, TEXT),
    "entity_type": (Entity.entity_type, TEXT),
    "entity_name": (Entity.entity_name, TEXT),
    "entity_code": (Entity.entity_code, TEXT),
    "entity_description": (Entity.entity_description, TEXT),
    "status": (Entity.status, TEXT),
    "smart_code": (Entity.smart_code, TEXT),
    "smart_code_status": (Entity.smart_code_status, TEXT),
    "parent_entity_id": (Entity.parent_entity_id, TEXT),
    "ai_classification": (Entity.ai_classification, TEXT),
    "validation_status": (Entity.validation_status, TEXT),
    "created_by": (Entity.created_by, TEXT),
    "updated_by": (Entity.updated_by, TEXT),
    "ai_confidence": (Entity.ai_confidence, NUMBER),
    "version": (Entity.version, NUMBER),
    "created_at": (Entity.created_at, DATETIME),
    "updated_at": (Entity.updated_at, DATETIME),
    "metadata": (Entity.metadata_, JSON),
    "business_rules": (Entity.business_rules, JSON),
    "ai_insights": (Entity.ai_insights, JSON),
    "validation_rules": (Entity.validation_rules, JSON),
    "tags": (Entity.tags, ARRAY),
}

FIELD_COLUMNS: dict[str, tuple[InstrumentedAttribute, str]] = {
    "id": (DynamicData.id, TEXT),
    "entity_id": (DynamicData.entity_id, TEXT),
    "field_name": (DynamicData.field_name, TEXT),
    "field_type": (DynamicData.field_type, TEXT),
    "smart_code": (DynamicData.smart_code, TEXT),
    "smart_code_status": (DynamicData.smart_code_status, TEXT),
    "validation_status": (DynamicData.validation_status, TEXT),
    "field_value_text": (DynamicData.field_value_text, TEXT),
    "field_value_file_url": (DynamicData.field_value_file_url, TEXT),
    "ai_enhanced_value": (DynamicData.ai_enhanced_value, TEXT),
    "created_by": (DynamicData.created_by, TEXT),
    "updated_by": (DynamicData.updated_by, TEXT),
    "field_value_number": (DynamicData.field_value_number, NUMBER),
    "field_order": (DynamicData.field_order, NUMBER),
    "ai_confidence": (DynamicData.ai_confidence, NUMBER),
    "version": (DynamicData.version, NUMBER),
    "field_value_boolean": (DynamicData.field_value_boolean, BOOL),
    "is_required": (DynamicData.is_required, BOOL),
    "is_searchable": (DynamicData.is_searchable, BOOL),
    "is_system_field": (DynamicData.is_system_field, BOOL),
    "field_value_date": (DynamicData.field_value_date, DATETIME),
    "created_at": (DynamicData.created_at, DATETIME),
    "updated_at": (DynamicData.updated_at, DATETIME),
    "field_value_json": (DynamicData.field_value_json, JSON),
    "ai_insights": (DynamicData.ai_insights, JSON),
    "validation_rules": (DynamicData.validation_rules, JSON),
}

SEARCH_KEY = "search"
TENANT_KEYS = frozenset({"organization_id", "tenant_id"})

_OPS_BY_KIND = {
    TEXT: {"eq", "ne", "in", "not_in", "contains", "is_null"},
    NUMBER: {"eq", "ne", "in", "not_in", "min", "max", "from", "to", "is_null"},
    DATETIME: {"eq", "ne", "min", "max", "from", "to", "is_null"},
    BOOL: {"eq", "ne", "is_null"},
    JSON: {"contains", "path", "equals", "in", "min", "max", "is_null"},
    ARRAY: {"contains", "overlaps", "is_null"},
}
_CODEC_TYPE = {TEXT: "text", NUMBER: "number", DATETIME: "date", BOOL: "boolean"}


def _coerce(name: str, kind: str, value: Any) -> Any:
    """Coerce a filter operand to the column's kind. TEXT accepts strings only."""
    if kind == TEXT:
        if not isinstance(value, str):
            raise InvalidFilter(f"expected a string, got {value!r}", name)
        return value
    try:
        return encode_value(_CODEC_TYPE[kind], value)[1]
    except TypeMismatch as e:
        raise InvalidFilter(str(e), name) from None


def _coerce_list(name: str, kind: str, values: Any) -> list[Any]:
    if not isinstance(values, (list, tuple, set)) or not values:
        raise InvalidFilter("expected a non-empty list", name)
    return [_coerce(name, kind, v) for v in values]


def _range(name: str, col: Any, kind: str, cond: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    if ({"min", "max"} & cond.keys()) and ({"from", "to"} & cond.keys()):
        raise InvalidFilter("use either min/max or from/to, not both", name)
    lo = cond.get("min", cond.get("from"))
    hi = cond.get("max", cond.get("to"))
    lo = _coerce(name, kind, lo) if lo is not None else None
    hi = _coerce(name, kind, hi) if hi is not None else None
    if lo is not None and hi is not None and lo > hi:
        raise InvalidFilter(f"range min {lo!r} > max {hi!r}", name)
    clauses = []
    if lo is not None:
        clauses.append(col >= lo)
    if hi is not None:
        clauses.append(col <= hi)
    return clauses


def _nest(path: str, value: Any) -> dict[str, Any]:
    keys = [k for k in path.split(".") if k]
    if not keys:
        raise InvalidFilter("empty path")
    doc: Any = value
    for key in reversed(keys):
        doc = {key: doc}
    return doc


def _json_operand(name: str, value: Any) -> Any:
    """JSON null is a legal operand; anything else must be JSON-serialisable."""
    if value is None:
        return None
    try:
        return encode_value("json", value)[1]
    except TypeMismatch as e:
        raise InvalidFilter(str(e), name) from None


def _json_path(name: str, col: Any, cond: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Operators applied at a nested key. Values compare by jsonb containment, so true/1/1.0 match
    the way Postgres compares json, not by their Python text form."""
    path = cond.get("path")
    if not isinstance(path, str) or not path.strip("."):
        raise InvalidFilter("path must be a dotted string", name)
    keys = tuple(k for k in path.split(".") if k)
    at_path = col[keys]
    clauses: list[ColumnElement[bool]] = []
    if "equals" in cond:
        clauses.append(col.contains(_nest(path, _json_operand(name, cond["equals"]))))
    if "in" in cond:
        values = cond["in"]
        if not isinstance(values, (list, tuple)) or not values:
            raise InvalidFilter("path 'in' expects a non-empty list", name)
        clauses.append(or_(*[col.contains(_nest(path, _json_operand(name, v))) for v in values]))
    if "contains" in cond:
        if not isinstance(cond["contains"], str):
            raise InvalidFilter("path 'contains' expects a string", name)
        clauses.append(at_path.astext.icontains(cond["contains"], autoescape=True))
    if "min" in cond or "max" in cond:
        clauses.extend(_range(name, cast(at_path.astext, Float), NUMBER, {k: cond[k] for k in ("min", "max") if k in cond}))
    if "is_null" in cond:
        if not isinstance(cond["is_null"], bool):
            raise InvalidFilter("is_null expects true/false", name)
        # #>> is NULL for a missing key and for json null
        clauses.append(at_path.astext.is_(None) if cond["is_null"] else at_path.astext.isnot(None))
    if not clauses:
        raise InvalidFilter("path needs one of equals, in, contains, min, max, is_null", name)
    return clauses


def _predicate(name: str, col: Any, kind: str, cond: Any) -> list[ColumnElement[bool]]:
    """Translate one filter entry into WHERE clauses."""
    if not isinstance(cond, Mapping):
        if kind == ARRAY:
            values = [cond] if isinstance(cond, str) else cond
            return [col.contains(_coerce_list(name, TEXT, values))]
        if kind == JSON:
            raise InvalidFilter("json columns take {'contains': {...}} or {'path': ..., 'equals': ...}", name)
        if isinstance(cond, (list, tuple, set)):
            return [col.in_(_coerce_list(name, kind, cond))]
        if cond is None:
            raise InvalidFilter("use {'is_null': true} to match empty values", name)
        return [col == _coerce(name, kind, cond)]

    if not cond:
        raise InvalidFilter("empty operator object", name)
    allowed = _OPS_BY_KIND[kind]
    unknown = sorted(set(cond) - allowed)
    if unknown:
        raise InvalidFilter(f"unsupported operator(s) {unknown} for {kind} column", name)

    if kind == JSON and "path" in cond:
        return _json_path(name, col, cond)
    if kind == JSON and ({"equals", "in", "min", "max"} & cond.keys()):
        raise InvalidFilter("equals/in/min/max on json columns need a 'path'", name)

    clauses: list[ColumnElement[bool]] = []
    if "is_null" in cond:
        if not isinstance(cond["is_null"], bool):
            raise InvalidFilter("is_null expects true/false", name)
        clauses.append(col.is_(None) if cond["is_null"] else col.isnot(None))
    if "eq" in cond:
        clauses.append(col == _coerce(name, kind, cond["eq"]))
    if "ne" in cond:
        clauses.append(col != _coerce(name, kind, cond["ne"]))
    if "in" in cond:
        clauses.append(col.in_(_coerce_list(name, kind, cond["in"])))
    if "not_in" in cond:
        clauses.append(not_(col.in_(_coerce_list(name, kind, cond["not_in"]))))
    if {"min", "max", "from", "to"} & cond.keys():
        clauses.extend(_range(name, col, kind, cond))
    if "contains" in cond:
        operand = cond["contains"]
        if kind == TEXT:
            clauses.append(col.icontains(_coerce(name, TEXT, operand), autoescape=True))
        elif kind == ARRAY:
            values = [operand] if isinstance(operand, str) else operand
            clauses.append(col.contains(_coerce_list(name, TEXT, values)))
        else:
            if not isinstance(operand, (Mapping, list)):
                raise InvalidFilter("json 'contains' expects an object or array", name)
            clauses.append(col.contains(operand))
    if "overlaps" in cond:
        clauses.append(col.overlap(_coerce_list(name, TEXT, cond["overlaps"])))
    return clauses


def _search_clause(document: Any, query: Any) -> ColumnElement[bool] | None:
    if query is None or (isinstance(query, str) and not query.strip()):
        return None
    if not isinstance(query, str):
        raise InvalidFilter("search expects a string", SEARCH_KEY)
    cfg = config.FTS_CONFIG
    return func.to_tsvector(cfg, document).op("@@")(func.websearch_to_tsquery(cfg, query.strip()))


def _where(
    filters: Mapping[str, Any] | None,
    columns: Mapping[str, tuple[Any, str]],
    search_document: Any,
) -> list[ColumnElement[bool]]:
    if filters is None:
        return []
    if not isinstance(filters, Mapping):
        raise InvalidFilter("filters must be an object")
    clauses: list[ColumnElement[bool]] = []
    for name, cond in filters.items():
        if name in TENANT_KEYS:
            raise InvalidFilter("tenant is taken from the caller context, not from filters", name)
        if name == SEARCH_KEY:
            clause = _search_clause(search_document, cond)
            if clause is not None:
                clauses.append(clause)
            continue
        if name not in columns:
            raise InvalidFilter("unknown field", name)
        col, kind = columns[name]
        clauses.extend(_predicate(name, col, kind, cond))
    return clauses


def _order(columns: Mapping[str, tuple[Any, str]], order_by: str | None, default: list[Any]) -> list[Any]:
    if not order_by:
        return default
    desc = order_by.startswith("-")
    name = order_by.lstrip("-+")
    if name not in columns or columns[name][1] in (JSON, ARRAY):
        raise InvalidFilter("cannot order by this field", name)
    col = columns[name][0]
    # id as tiebreaker keeps paging stable
    return [col.desc() if desc else col.asc(), default[-1]]


def _page(stmt: Select, limit: int | None, offset: int | None) -> Select:
    if limit is None:
        limit = config.QUERY_DEFAULT_LIMIT
    if limit < 1 or limit > config.QUERY_MAX_LIMIT:
        raise InvalidFilter(f"limit must be between 1 and {config.QUERY_MAX_LIMIT}", "limit")
    if offset is not None and offset < 0:
        raise InvalidFilter("offset must be >= 0", "offset")
    return stmt.limit(limit).offset(offset or 0)


def entity_search_document() -> Any:
    return func.concat_ws(" ", Entity.entity_name, Entity.entity_code, Entity.entity_description)


def field_search_document() -> Any:
    return func.concat_ws(" ", DynamicData.field_name, DynamicData.field_value_text)


def build_entity_query(
    tenant_id: str | None,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
    offset: int | None = 0,
    order_by: str | None = None,
) -> Select[tuple[Entity]]:
    """Tenant-scoped Select over core_entities. Raises InvalidFilter, TenantRequiredError."""
    tenant_id = require_tenant_id(tenant_id)
    clauses = _where(filters, ENTITY_COLUMNS, entity_search_document())
    stmt = select_entity_for_tenant(tenant_id)
    if clauses:
        stmt = stmt.where(and_(*clauses))
    stmt = stmt.order_by(*_order(ENTITY_COLUMNS, order_by, [Entity.created_at.asc(), Entity.id.asc()]))
    return _page(stmt, limit, offset)


def build_field_query(
    tenant_id: str | None,
    filters: Mapping[str, Any] | None = None,
    *,
    limit: int | None = None,
    offset: int | None = 0,
    order_by: str | None = None,
) -> Select[tuple[DynamicData]]:
    """Tenant-scoped Select over core_dynamic_data. Full-text search only matches is_searchable fields."""
    tenant_id = require_tenant_id(tenant_id)
    clauses = _where(filters, FIELD_COLUMNS, field_search_document())
    if filters and isinstance(filters.get(SEARCH_KEY), str) and filters[SEARCH_KEY].strip():
        clauses.append(DynamicData.is_searchable.is_(True))
    stmt = select_dynamic_data_for_tenant(tenant_id)
    if clauses:
        stmt = stmt.where(and_(*clauses))
    default = [DynamicData.field_order.asc(), DynamicData.field_name.asc(), DynamicData.id.asc()]
    stmt = stmt.order_by(*_order(FIELD_COLUMNS, order_by, default))
    return _page(stmt, limit, offset)
