"""Lightweight debug endpoints for testing. Enabled only when ENV=test.

No DB access; used by auth tests to verify tenant/actor injection without touching the store.
"""

from fastapi import APIRouter

from apps.universal_api.services.tenant_context import TenantContextDep

router = APIRouter()


@router.get("/tenant")
async def debug_tenant(ctx: TenantContextDep) -> dict:
    """Return tenant_id and actor_id from auth. Requires auth. For testing only (ENV=test)."""
    return {"tenant_id": ctx.tenant_id, "actor_id": ctx.actor_id}
