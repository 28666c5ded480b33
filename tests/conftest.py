"""Pytest fixtures for root-level tests (repo integration, tenant isolation, schema setup)."""

import os
import uuid

import pytest

# Also set by the root conftest; kept for runs scoped to tests/
os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")

from tests._db_bootstrap import postgres_reachable


def _db_available_for_tests() -> bool:
    """True if DATABASE_TEST_URL is set and Postgres is reachable (short timeout)."""
    url = os.environ.get("DATABASE_TEST_URL")
    if not url:
        return False
    return postgres_reachable(url)


# Marker for DB tests: skip if DATABASE_TEST_URL not set or Postgres not reachable
requires_db = pytest.mark.skipif(
    not _db_available_for_tests(),
    reason="DATABASE_TEST_URL not set or Postgres not reachable",
)


@pytest.fixture
def tenant_ctx():
    """Fresh tenant per test so rows from other tests never match."""
    from apps.universal_api.services.tenant_context import TenantContext

    return TenantContext(tenant_id=f"org-{uuid.uuid4().hex[:12]}", actor_id="user-test")


@pytest.fixture
def other_tenant_ctx():
    from apps.universal_api.services.tenant_context import TenantContext

    return TenantContext(tenant_id=f"org-{uuid.uuid4().hex[:12]}", actor_id="user-other")
