"""Dynamic field endpoints (by field id). Tenant and actor from auth middleware only."""

from fastapi import APIRouter

from apps.universal_api.schemas.requests import FieldUpdate, QueryRequest, VersionedRequest
from apps.universal_api.schemas.responses import DeleteResponse, FieldRead
from apps.universal_api.services import repo
from apps.universal_api.services.tenant_context import TenantContextDep

router = APIRouter()


@router.post("/query", response_model=list[FieldRead])
async def query_fields(body: QueryRequest, ctx: TenantContextDep) -> list[FieldRead]:
    return repo.query_fields(ctx, body.filters, limit=body.limit, offset=body.offset, order_by=body.order_by)


@router.get("/{field_id}", response_model=FieldRead)
async def get_field(field_id: str, ctx: TenantContextDep) -> FieldRead:
    return repo.get_field(ctx, field_id)


@router.patch("/{field_id}", response_model=FieldRead)
async def update_field(field_id: str, body: FieldUpdate, ctx: TenantContextDep) -> FieldRead:
    """Replace value/type, reorder, toggle flags. body.version must equal the stored version, else 409."""
    patch = body.model_dump(exclude_unset=True)
    version = patch.pop("version")
    return repo.update_field(ctx, field_id, version, patch)


@router.post("/{field_id}/revalidate", response_model=FieldRead)
async def revalidate_field(field_id: str, body: VersionedRequest, ctx: TenantContextDep) -> FieldRead:
    return repo.revalidate_field(ctx, field_id, body.version)


@router.delete("/{field_id}", response_model=DeleteResponse)
async def delete_field(field_id: str, body: VersionedRequest, ctx: TenantContextDep) -> DeleteResponse:
    return DeleteResponse(**repo.delete_field(ctx, field_id, body.version))
