"""Shared by tests/ and apps/universal_api/tests/: test env flags, *_test DB guard, per-session schema reset."""

import os

import pytest

# ENV=test enables the /debug router and the X-Tenant-Debug header switch
os.environ.setdefault("ENV", "test")
os.environ.setdefault("PYTEST_RUNNING", "1")

from tests._db_bootstrap import ensure_test_db_guard, postgres_reachable, run_test_db_schema_fixture

_TEST_URL = os.getenv("DATABASE_TEST_URL")

# Must run before apps.universal_api.db builds its engine from DATABASE_URL
if _TEST_URL:
    ensure_test_db_guard()


@pytest.fixture(scope="session", autouse=True)
def test_db_schema():
    """Fresh public schema for the session via SCHEMA_AUTHORITY (alembic | ensure_tables).

    No-op without a reachable DATABASE_TEST_URL; those tests carry @requires_db and skip.
    """
    if _TEST_URL and postgres_reachable(_TEST_URL):
        run_test_db_schema_fixture()
