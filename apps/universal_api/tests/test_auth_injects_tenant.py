"""Tests for auth middleware: tenant injection from Authorization header.

Uses /debug/tenant (ENV=test only) so no DB is touched.
"""

import jwt as pyjwt
import pytest
from fastapi.testclient import TestClient

from apps.universal_api.config import config
from apps.universal_api.main import app
from apps.universal_api.services.auth import Identity, identity_from_authorization

client = TestClient(app)

JWT_KEY = "unit-test-signing-key-0123456789abcdef"


def test_auth_with_bearer_tenant_injects_tenant_id() -> None:
    resp = client.get("/debug/tenant", headers={"Authorization": "Bearer tenant:my-tenant-123"})
    assert resp.status_code == 200
    assert resp.json() == {"tenant_id": "my-tenant-123", "actor_id": None}


def test_bearer_tenant_with_actor() -> None:
    resp = client.get("/debug/tenant", headers={"Authorization": "Bearer tenant=org-9; actor:user-1"})
    assert resp.status_code == 200
    assert resp.json() == {"tenant_id": "org-9", "actor_id": "user-1"}


def test_auth_without_header_returns_401() -> None:
    resp = client.get("/debug/tenant")
    assert resp.status_code == 401


def test_auth_invalid_bearer_returns_401() -> None:
    resp = client.get("/debug/tenant", headers={"Authorization": "Bearer invalid"})
    assert resp.status_code == 401


def test_health_is_public() -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["service"] == "universal-api"


def test_jwt_claims_unverified_without_secret(monkeypatch) -> None:
    monkeypatch.delenv("JWT_SECRET", raising=False)
    token = pyjwt.encode({"tenant_id": "jwt-org", "sub": "user-42"}, JWT_KEY, algorithm="HS256")
    resp = client.get("/debug/tenant", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json() == {"tenant_id": "jwt-org", "actor_id": "user-42"}


def test_jwt_organization_id_claim(monkeypatch) -> None:
    monkeypatch.setenv("JWT_SECRET", JWT_KEY)
    token = pyjwt.encode({"organization_id": "org-claim"}, JWT_KEY, algorithm="HS256")
    resp = client.get("/debug/tenant", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "org-claim"


def test_jwt_bad_signature_returns_401(monkeypatch) -> None:
    monkeypatch.setenv("JWT_SECRET", JWT_KEY)
    token = pyjwt.encode({"tenant_id": "jwt-org"}, "another-signing-key-0123456789abcdef", algorithm="HS256")
    resp = client.get("/debug/tenant", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


def test_auth_tenant_from_bearer_not_header_when_debug_disabled() -> None:
    resp = client.get(
        "/debug/tenant",
        headers={"Authorization": "Bearer tenant:bearer-tenant-id", "X-Tenant-Debug": "header-tenant-id"},
    )
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "bearer-tenant-id"


def test_x_tenant_debug_ignored_in_non_test_env(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "prod")
    monkeypatch.setenv("ENABLE_TEST_TENANT_HEADER", "1")

    resp = client.get("/debug/tenant", headers={"X-Tenant-Debug": "debug-tenant-id"})
    assert resp.status_code == 401

    resp2 = client.get("/debug/tenant", headers={"Authorization": "Bearer tenant:valid-tenant"})
    assert resp2.status_code == 200
    assert resp2.json()["tenant_id"] == "valid-tenant"


def test_x_tenant_debug_allowed_only_when_test_env_and_flag(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("ENABLE_TEST_TENANT_HEADER", "1")

    resp = client.get("/debug/tenant", headers={"X-Tenant-Debug": "debug-only-tenant"})
    assert resp.status_code == 200
    assert resp.json()["tenant_id"] == "debug-only-tenant"


def test_unauthenticated_body_uses_error_shape() -> None:
    resp = client.get("/debug/tenant")
    assert resp.json()["error"] == "tenant_required"


@pytest.mark.parametrize(
    "header",
    [None, "", "Basic dGVuYW50OkE=", "Bearer ", "Bearer tenant:", "Bearer tenant:  ;actor:u1"],
)
def test_identity_from_authorization_rejects(header) -> None:
    assert identity_from_authorization(header) is None


def test_identity_from_authorization_strips_whitespace() -> None:
    assert identity_from_authorization("  bearer   tenant: org-1 ; actor= u-7 ") == Identity("org-1", "u-7")


def test_health_reports_git_sha(monkeypatch) -> None:
    monkeypatch.setenv("GIT_SHA", " abc123 ")
    assert client.get("/health").json()["version"] == "abc123"
    monkeypatch.delenv("GIT_SHA")
    assert client.get("/health").json()["version"] == "dev"


def test_config_reads_auth_settings_per_access(monkeypatch) -> None:
    monkeypatch.setenv("JWT_SECRET", "  s3cret ")
    monkeypatch.setenv("ENABLE_TEST_TENANT_HEADER", "yes")
    assert config.JWT_SECRET == "s3cret"
    assert config.ENABLE_TEST_TENANT_HEADER is True
    monkeypatch.setenv("ENABLE_TEST_TENANT_HEADER", "0")
    assert config.ENABLE_TEST_TENANT_HEADER is False
    monkeypatch.delenv("JWT_SECRET")
    assert config.JWT_SECRET == ""
