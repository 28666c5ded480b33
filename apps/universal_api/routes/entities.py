"""Entity CRUD + structured query endpoints. Tenant and actor from auth middleware only."""

from fastapi import APIRouter

from apps.universal_api.config import config
from apps.universal_api.schemas.requests import (
    BulkEntityCreate,
    BulkFieldCreate,
    EntityCreate,
    EntityDelete,
    EntityUpdate,
    FieldCreate,
    QueryRequest,
)
from apps.universal_api.schemas.responses import BulkCreateResult, DeleteResponse, EntityRead, FieldRead
from apps.universal_api.services import repo
from apps.universal_api.services.tenant_context import TenantContextDep

router = APIRouter()


@router.post("", response_model=EntityRead, status_code=201)
async def create_entity(body: EntityCreate, ctx: TenantContextDep) -> EntityRead:
    """Create one entity, plus `fields` in the same transaction. Missing required fields are all reported in one 422."""
    return repo.create_entity(ctx, body)


@router.post("/bulk", response_model=BulkCreateResult)
async def bulk_create_entities(body: BulkEntityCreate, ctx: TenantContextDep) -> BulkCreateResult:
    """Create entities one by one. Partial success: see `errors` for failed indexes."""
    return repo.bulk_create_entities(ctx, body.entities)


@router.post("/query", response_model=list[EntityRead])
async def query_entities(body: QueryRequest, ctx: TenantContextDep) -> list[EntityRead]:
    """Structured filter query, always scoped to the caller's organization."""
    return repo.query_entities(
        ctx,
        body.filters,
        limit=body.limit,
        offset=body.offset,
        order_by=body.order_by,
        include_fields=body.include_fields,
    )


@router.get("/{entity_id}", response_model=EntityRead)
async def get_entity(entity_id: str, ctx: TenantContextDep, include_fields: bool = False) -> EntityRead:
    """include_fields=true returns the entity with its dynamic fields in field_order."""
    return repo.get_entity(ctx, entity_id, include_fields=include_fields)


@router.patch("/{entity_id}", response_model=EntityRead)
async def update_entity(entity_id: str, body: EntityUpdate, ctx: TenantContextDep) -> EntityRead:
    """Optimistic update: body.version must equal the stored version, else 409.
    `fields` upserts dynamic fields by field_name and `remove_fields` deletes them, in the same transaction."""
    patch = body.model_dump(exclude_unset=True)
    version = patch.pop("version")
    return repo.update_entity(ctx, entity_id, version, patch)


@router.delete("/{entity_id}", response_model=DeleteResponse)
async def delete_entity(entity_id: str, body: EntityDelete, ctx: TenantContextDep) -> DeleteResponse:
    """Soft delete by default; hard=true removes the row and its dynamic fields."""
    return DeleteResponse(**repo.delete_entity(ctx, entity_id, body.version, hard=body.hard))


@router.post("/{entity_id}/fields", response_model=FieldRead, status_code=201)
async def create_field(entity_id: str, body: FieldCreate, ctx: TenantContextDep) -> FieldRead:
    return repo.create_field(ctx, entity_id, body)


@router.post("/{entity_id}/fields/bulk", response_model=BulkCreateResult)
async def bulk_create_fields(entity_id: str, body: BulkFieldCreate, ctx: TenantContextDep) -> BulkCreateResult:
    return repo.bulk_create_fields(ctx, entity_id, body.fields)


@router.get("/{entity_id}/fields", response_model=list[FieldRead])
async def list_entity_fields(entity_id: str, ctx: TenantContextDep) -> list[FieldRead]:
    """All dynamic fields of the entity in field_order."""
    repo.get_entity(ctx, entity_id)
    return repo.query_fields(ctx, {"entity_id": entity_id}, limit=config.QUERY_MAX_LIMIT)


@router.get("/{entity_id}/values")
async def get_entity_values(entity_id: str, ctx: TenantContextDep) -> dict:
    """Decoded {field_name: value} map of the entity's dynamic fields."""
    return repo.get_entity_fields_map(ctx, entity_id)
