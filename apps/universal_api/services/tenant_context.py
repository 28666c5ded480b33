"""Who is calling: the organization every repo operation is scoped to, and the actor stamped on writes.

Built from request.state, which only the auth middleware sets. Payloads cannot carry organization_id
(request schemas forbid extra keys), so this is the single source of tenant for a request.
"""

from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request


@dataclass(frozen=True)
class TenantContext:
    """tenant_id is the organization_id; actor_id fills created_by / updated_by (None for system writes)."""

    tenant_id: str
    actor_id: str | None = None

    @property
    def organization_id(self) -> str:
        return self.tenant_id


def get_tenant_context(request: Request) -> TenantContext:
    """FastAPI dependency. 401 when the middleware did not attach a tenant (e.g. a public path)."""
    tenant_id = str(getattr(request.state, "tenant_id", None) or "").strip()
    if not tenant_id:
        raise HTTPException(status_code=401, detail="Tenant ID required")
    return TenantContext(tenant_id=tenant_id, actor_id=getattr(request.state, "actor_id", None))


TenantContextDep = Annotated[TenantContext, Depends(get_tenant_context)]
