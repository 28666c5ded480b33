"""Repository layer: tenant-scoped queries and helpers."""

from apps.universal_api.repositories.tenant_filters import (
    select_dynamic_data_for_tenant,
    select_entity_for_tenant,
    tenant_where,
)

__all__ = [
    "tenant_where",
    "select_entity_for_tenant",
    "select_dynamic_data_for_tenant",
]
