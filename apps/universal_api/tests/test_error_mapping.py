"""Structural errors map to HTTP status codes with a stable JSON body."""

import pytest
from fastapi.testclient import TestClient

from apps.universal_api.main import app, status_for
from apps.universal_api.services import repo
from apps.universal_api.services.errors import (
    DuplicateField,
    EntityNotFound,
    FieldNotFound,
    InvalidFilter,
    InvalidHierarchy,
    InvalidPatch,
    MissingRequiredField,
    TypeMismatch,
    UnknownFieldType,
    ValueTooLong,
    VersionConflict,
)
from apps.universal_api.services.tenant_guard import TenantRequiredError

client = TestClient(app)
AUTH = {"Authorization": "Bearer tenant:org-1"}


@pytest.mark.parametrize(
    "exc,status",
    [
        (EntityNotFound("e1"), 404),
        (FieldNotFound("f1"), 404),
        (VersionConflict("e1", 1, 2), 409),
        (DuplicateField("e1", "color"), 409),
        (MissingRequiredField(["entity_name"]), 422),
        (TenantRequiredError(), 422),
        (TypeMismatch("number", "x"), 422),
        (UnknownFieldType("color"), 422),
        (InvalidFilter("bad"), 422),
        (InvalidHierarchy("cycle"), 422),
        (InvalidPatch(["id"]), 422),
        (ValueTooLong({"entity_name": 512}), 422),
    ],
)
def test_status_for(exc, status) -> None:
    assert status_for(exc) == status


def test_tenant_required_is_missing_organization_id() -> None:
    err = TenantRequiredError()
    assert isinstance(err, MissingRequiredField)
    assert isinstance(err, ValueError)
    assert err.fields == ["organization_id"]


def test_not_found_response(monkeypatch) -> None:
    def _raise(ctx, entity_id, include_fields=False):
        raise EntityNotFound(entity_id)

    monkeypatch.setattr(repo, "get_entity", _raise)
    resp = client.get("/entities/missing-id", headers=AUTH)
    assert resp.status_code == 404
    assert resp.json() == {"error": "entity_not_found", "message": "EntityNotFound: missing-id"}


def test_version_conflict_response(monkeypatch) -> None:
    def _raise(ctx, entity_id, version, patch):
        raise VersionConflict(entity_id, version, version + 1)

    monkeypatch.setattr(repo, "update_entity", _raise)
    resp = client.patch("/entities/e1", json={"version": 1, "entity_name": "New"}, headers=AUTH)
    assert resp.status_code == 409
    body = resp.json()
    assert body["error"] == "version_conflict"
    assert body["expected_version"] == 1
    assert body["current_version"] == 2


def test_route_passes_context_from_auth(monkeypatch) -> None:
    seen = {}

    def _capture(ctx, entity_id, include_fields=False):
        seen["ctx"] = ctx
        raise EntityNotFound(entity_id)

    monkeypatch.setattr(repo, "get_entity", _capture)
    client.get("/entities/e1", headers={"Authorization": "Bearer tenant:org-7;actor:user-3"})
    assert seen["ctx"].tenant_id == "org-7"
    assert seen["ctx"].actor_id == "user-3"


def test_value_too_long_response(monkeypatch) -> None:
    def _raise(ctx, request):
        raise ValueTooLong({"entity_name": 512})

    monkeypatch.setattr(repo, "create_entity", _raise)
    body = {"entity_type": "customer", "entity_name": "x", "smart_code": "HERA.CRM.CUST.ENT.PROF.v1"}
    resp = client.post("/entities", json=body, headers=AUTH)
    assert resp.status_code == 422
    assert resp.json() == {
        "error": "value_too_long",
        "message": "Too long: entity_name (max 512)",
        "fields": ["entity_name"],
        "max_length": {"entity_name": 512},
    }


def test_include_fields_reaches_repo(monkeypatch) -> None:
    seen = {}

    def _capture(ctx, entity_id, include_fields=False):
        seen["include_fields"] = include_fields
        raise EntityNotFound(entity_id)

    monkeypatch.setattr(repo, "get_entity", _capture)
    client.get("/entities/e1?include_fields=true", headers=AUTH)
    assert seen["include_fields"] is True
    client.get("/entities/e1", headers=AUTH)
    assert seen["include_fields"] is False


def test_query_include_fields_reaches_repo(monkeypatch) -> None:
    seen = {}

    def _capture(ctx, filters, **kwargs):
        seen.update(kwargs)
        return []

    monkeypatch.setattr(repo, "query_entities", _capture)
    resp = client.post("/entities/query", json={"filters": {}, "include_fields": True}, headers=AUTH)
    assert resp.status_code == 200
    assert seen["include_fields"] is True
