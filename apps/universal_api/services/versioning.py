"""Optimistic concurrency and audit stamping for entity and dynamic-field mutations.

The repo applies stamp_update() inside a conditional UPDATE (WHERE version = expected), so the
check and the write are one statement; check_version() is for callers holding a loaded row.
"""

from datetime import datetime
from typing import Any

from apps.universal_api.services.errors import VersionConflict
from apps.universal_api.services.record_builder import utcnow

# Columns a patch may never touch; they are owned by the guard or immutable.
PROTECTED_COLUMNS = frozenset(
    {"id", "organization_id", "entity_id", "version", "created_at", "created_by", "updated_at", "updated_by"}
)


def check_version(record_id: Any, stored_version: int | None, expected_version: int) -> None:
    """Raise VersionConflict unless stored_version == expected_version."""
    if stored_version != expected_version:
        raise VersionConflict(record_id, expected_version, stored_version)


def stamp_update(
    patch: dict[str, Any],
    actor_id: str | None,
    expected_version: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return patch + audit columns: updated_at, updated_by, version = expected + 1.
    Protected columns in patch are dropped."""
    values = {k: v for k, v in patch.items() if k not in PROTECTED_COLUMNS}
    values["updated_at"] = now or utcnow()
    values["updated_by"] = actor_id
    values["version"] = expected_version + 1
    return values
