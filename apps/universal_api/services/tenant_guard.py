"""Tenant-scoped query choke point. All repo methods must use require_tenant_id and tenant_where."""

from apps.universal_api.repositories.tenant_filters import tenant_where
from apps.universal_api.services.errors import MissingRequiredField


class TenantRequiredError(MissingRequiredField, ValueError):
    """Raised when tenant_id (organization_id) is None or empty."""

    def __init__(self) -> None:
        super().__init__(["organization_id"])


def require_tenant_id(tenant_id: str | None) -> str:
    """
    Validate tenant_id; return stripped value. Raises TenantRequiredError if missing/empty.
    Call at start of every tenant-scoped repo method.
    """
    if not tenant_id or not str(tenant_id).strip():
        raise TenantRequiredError()
    return str(tenant_id).strip()


__all__ = ["TenantRequiredError", "require_tenant_id", "tenant_where"]
