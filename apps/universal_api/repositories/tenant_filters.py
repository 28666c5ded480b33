"""Tenant-scoped SQL helpers. All tenant-scoped queries MUST use these.

Provides:
  - tenant_where(model, tenant_id): binary expression for WHERE model.organization_id == tenant_id
  - select_*_for_tenant(tenant_id): SQLAlchemy Select with tenant filter applied
  - Joins MUST enforce organization_id on each table involved (not just one).
"""

from sqlalchemy import BinaryExpression, Select, select

from apps.universal_api.models.dynamic_data import DynamicData
from apps.universal_api.models.entity import Entity


def tenant_where(model: type, tenant_id: str) -> BinaryExpression[bool]:
    """Return WHERE clause: model.organization_id == tenant_id. Use for filters and joins."""
    col = getattr(model, "organization_id", None)
    if col is None:
        raise ValueError(f"Model {model.__name__} has no organization_id column")
    return col == tenant_id


def select_entity_for_tenant(tenant_id: str) -> Select[tuple[Entity]]:
    """Select from core_entities with tenant filter. Add .where() for further filters."""
    return select(Entity).where(tenant_where(Entity, tenant_id))


def select_dynamic_data_for_tenant(tenant_id: str) -> Select[tuple[DynamicData]]:
    """Select from core_dynamic_data with tenant filter. Add .where() for further filters."""
    return select(DynamicData).where(tenant_where(DynamicData, tenant_id))
