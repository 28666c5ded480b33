"""DB tests: dynamic fields (polymorphic storage, duplicates, typed updates, revalidation, cascade)."""

import pytest
from sqlalchemy.exc import IntegrityError

from apps.universal_api.db import get_db
from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.schemas.requests import FieldCreate
from apps.universal_api.services import repo
from apps.universal_api.services.errors import (
    DuplicateField,
    EntityNotFound,
    FieldNotFound,
    TypeMismatch,
    VersionConflict,
)
from apps.universal_api.services.value_codec import VALUE_COLUMNS
from tests.conftest import requires_db

SMART_CODE = "HERA.CRM.CUST.DYN.ATTR.v1"


@pytest.fixture
def entity(tenant_ctx):
    return repo.create_entity(
        tenant_ctx, {"entity_type": "customer", "entity_name": "Acme", "smart_code": "HERA.CRM.CUST.ENT.PROF.v1"}
    )


def _field(ctx, entity_id, name, field_type, value, **extra):
    return repo.create_field(
        ctx,
        entity_id,
        {"field_name": name, "field_type": field_type, "value": value, "smart_code": SMART_CODE, **extra},
    )


def _set_columns(field) -> list[str]:
    return [c for c in VALUE_COLUMNS if getattr(field, c) is not None]


@requires_db
def test_number_field_uses_only_number_column(tenant_ctx, entity) -> None:
    created = repo.create_field(
        tenant_ctx,
        entity.id,
        FieldCreate(field_name="credit_limit", field_type="number", value=123.45, smart_code=SMART_CODE),
    )
    assert created.field_value_number == 123.45
    assert _set_columns(created) == ["field_value_number"]
    stored = repo.get_field(tenant_ctx, created.id)
    assert stored.field_value_number == 123.45
    assert _set_columns(stored) == ["field_value_number"]


@requires_db
def test_every_field_type_round_trips_through_the_store(tenant_ctx, entity) -> None:
    values = {
        "text": "hello",
        "number": "42",
        "boolean": "yes",
        "date": "2024-02-29",
        "json": {"items": [1, 2, 3]},
        "file_url": "https://cdn.example.com/contract.pdf",
    }
    for field_type, value in values.items():
        field = _field(tenant_ctx, entity.id, f"f_{field_type}", field_type, value)
        assert _set_columns(field) == [f"field_value_{field_type}"]
    fields_map = repo.get_entity_fields_map(tenant_ctx, entity.id)
    assert fields_map["f_number"] == 42.0
    assert fields_map["f_boolean"] is True
    assert fields_map["f_json"] == {"items": [1, 2, 3]}
    assert fields_map["f_date"].year == 2024


@requires_db
def test_type_mismatch_writes_nothing(tenant_ctx, entity) -> None:
    with pytest.raises(TypeMismatch):
        _field(tenant_ctx, entity.id, "credit_limit", "number", "lots")
    assert repo.get_entity_fields_map(tenant_ctx, entity.id) == {}


@requires_db
def test_check_constraint_rejects_two_value_columns(tenant_ctx, entity) -> None:
    """The table itself refuses a row with more than one value column set."""
    field = _field(tenant_ctx, entity.id, "color", "text", "red")
    with pytest.raises(IntegrityError):
        with get_db() as session:
            obj = session.get(DynamicData, field.id)
            obj.field_value_number = 1.0
            session.flush()


@requires_db
def test_duplicate_field_name(tenant_ctx, entity) -> None:
    _field(tenant_ctx, entity.id, "color", "text", "red")
    with pytest.raises(DuplicateField):
        _field(tenant_ctx, entity.id, "color", "text", "blue")


@requires_db
def test_field_requires_entity_in_same_tenant(tenant_ctx, other_tenant_ctx, entity) -> None:
    with pytest.raises(EntityNotFound):
        _field(other_tenant_ctx, entity.id, "color", "text", "red")
    with pytest.raises(EntityNotFound):
        _field(tenant_ctx, "no-such-entity", "color", "text", "red")


@requires_db
def test_update_value_and_type(tenant_ctx, entity) -> None:
    field = _field(tenant_ctx, entity.id, "credit_limit", "number", 100)
    updated = repo.update_field(tenant_ctx, field.id, 1, {"value": "250.5"})
    assert updated.version == 2
    assert updated.field_value_number == 250.5
    retyped = repo.update_field(tenant_ctx, field.id, 2, {"field_type": "text"})
    assert retyped.field_type == "text"
    assert retyped.field_value_text == "250.5"
    assert _set_columns(retyped) == ["field_value_text"]
    with pytest.raises(TypeMismatch):
        repo.update_field(tenant_ctx, field.id, 3, {"field_type": "boolean", "value": "perhaps"})
    assert repo.get_field(tenant_ctx, field.id).version == 3


@requires_db
def test_field_update_version_conflict(tenant_ctx, entity) -> None:
    field = _field(tenant_ctx, entity.id, "color", "text", "red")
    repo.update_field(tenant_ctx, field.id, 1, {"field_order": 3})
    with pytest.raises(VersionConflict):
        repo.update_field(tenant_ctx, field.id, 1, {"field_order": 4})
    assert repo.get_field(tenant_ctx, field.id).field_order == 3


@requires_db
def test_rules_and_revalidation(tenant_ctx, entity) -> None:
    field = _field(tenant_ctx, entity.id, "discount", "number", 40, validation_rules={"max": 30})
    assert field.validation_status == "invalid"
    assert field.validation_messages == ["discount: must be <= 30"]
    relaxed = repo.update_field(tenant_ctx, field.id, 1, {"validation_rules": {"max": 50}})
    assert relaxed.validation_status == "valid"
    revalidated = repo.revalidate_field(tenant_ctx, field.id, 2)
    assert revalidated.version == 3
    assert revalidated.validation_status == "valid"


@requires_db
def test_query_fields(tenant_ctx, entity) -> None:
    _field(tenant_ctx, entity.id, "notes", "text", "prefers email contact", field_order=2)
    _field(tenant_ctx, entity.id, "secret", "text", "email only", field_order=1, is_searchable=False)
    _field(tenant_ctx, entity.id, "score", "number", 88, field_order=0)
    names = [f.field_name for f in repo.query_fields(tenant_ctx, {"entity_id": entity.id})]
    assert names == ["score", "secret", "notes"]
    assert [f.field_name for f in repo.query_fields(tenant_ctx, {"search": "email"})] == ["notes"]
    assert [f.field_name for f in repo.query_fields(tenant_ctx, {"field_value_number": {"min": 80}})] == ["score"]


@requires_db
def test_bulk_fields_partial_success(tenant_ctx, entity) -> None:
    result = repo.bulk_create_fields(
        tenant_ctx,
        entity.id,
        [
            {"field_name": "a", "field_type": "text", "value": "x", "smart_code": SMART_CODE},
            {"field_name": "b", "field_type": "number", "value": "x", "smart_code": SMART_CODE},
            {"field_name": "a", "field_type": "text", "value": "y", "smart_code": SMART_CODE},
        ],
    )
    assert [f.field_name for f in result.created] == ["a"]
    assert [(e.index, e.error) for e in result.errors] == [(1, "type_mismatch"), (2, "duplicate_field")]


@requires_db
def test_bulk_fields_report_over_long_and_rejected_values(tenant_ctx, entity) -> None:
    result = repo.bulk_create_fields(
        tenant_ctx,
        entity.id,
        [
            {"field_name": "f" * 256, "field_type": "text", "value": "x", "smart_code": SMART_CODE},
            # jsonb refuses NaN
            {"field_name": "doc", "field_type": "text", "value": "z", "smart_code": SMART_CODE, "ai_insights": {"s": float("nan")}},
            {"field_name": "ok", "field_type": "text", "value": "y", "smart_code": SMART_CODE},
        ],
    )
    assert [f.field_name for f in result.created] == ["ok"]
    assert [(e.index, e.error) for e in result.errors] == [(0, "value_too_long"), (1, "storage_rejected")]
    assert repo.get_entity_fields_map(tenant_ctx, entity.id) == {"ok": "y"}


@requires_db
def test_delete_field(tenant_ctx, entity) -> None:
    field = _field(tenant_ctx, entity.id, "color", "text", "red")
    with pytest.raises(VersionConflict):
        repo.delete_field(tenant_ctx, field.id, 2)
    repo.delete_field(tenant_ctx, field.id, 1)
    with pytest.raises(FieldNotFound):
        repo.get_field(tenant_ctx, field.id)


@requires_db
def test_hard_delete_cascades_to_fields(tenant_ctx, entity) -> None:
    field = _field(tenant_ctx, entity.id, "color", "text", "red")
    repo.delete_entity(tenant_ctx, entity.id, 1, hard=True)
    with pytest.raises(FieldNotFound):
        repo.get_field(tenant_ctx, field.id)
    assert repo.query_fields(tenant_ctx, {"entity_id": entity.id}) == []
