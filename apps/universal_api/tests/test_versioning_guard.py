"""Unit tests: optimistic concurrency check and audit stamping."""

from datetime import datetime, timezone

import pytest

from apps.universal_api.services.errors import VersionConflict
from apps.universal_api.services.versioning import PROTECTED_COLUMNS, check_version, stamp_update

NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def test_check_version_matches() -> None:
    check_version("e1", 3, 3)


def test_check_version_conflict() -> None:
    with pytest.raises(VersionConflict) as exc:
        check_version("e1", 2, 1)
    assert exc.value.expected == 1
    assert exc.value.actual == 2
    body = exc.value.to_dict()
    assert body["error"] == "version_conflict"
    assert body["current_version"] == 2


def test_stamp_update_bumps_version_and_audit() -> None:
    values = stamp_update({"entity_name": "New"}, "user-7", 4, NOW)
    assert values == {"entity_name": "New", "updated_at": NOW, "updated_by": "user-7", "version": 5}


def test_stamp_update_drops_protected_columns() -> None:
    patch = {c: "x" for c in PROTECTED_COLUMNS}
    patch["status"] = "inactive"
    values = stamp_update(patch, None, 1, NOW)
    assert values["status"] == "inactive"
    assert values["version"] == 2
    assert "organization_id" not in values
    assert "created_at" not in values
