"""Liveness endpoint. Public (see auth.PUBLIC_PATHS); no tenant and no database access."""

from datetime import datetime, timezone

from fastapi import APIRouter

from apps.universal_api.config import config
from apps.universal_api.schemas.health import HealthResponse

router = APIRouter()

SERVICE_NAME = "universal-api"


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(
        ok=True,
        service=SERVICE_NAME,
        version=config.GIT_SHA,
        time=datetime.now(timezone.utc).isoformat(),
    )
