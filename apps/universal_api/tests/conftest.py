"""Pytest fixtures for API tests."""

import os

import pytest

# Ensure tests can find apps when run from project root
os.environ.setdefault("PYTHONPATH", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "..", "..")))
os.environ.setdefault("ENV", "test")

SMART_CODE = "HERA.CRM.CUST.ENT.PROF.v1"


@pytest.fixture
def entity_payload():
    return {
        "entity_type": "customer",
        "entity_name": "Acme Corp",
        "smart_code": SMART_CODE,
    }


@pytest.fixture
def field_payload():
    return {
        "field_name": "credit_limit",
        "field_type": "number",
        "value": 5000,
        "smart_code": "HERA.CRM.CUST.DYN.CREDIT.v1",
    }


# Mirror: use shared marker from tests.conftest (single source of truth)
from tests.conftest import requires_db  # noqa: F401
