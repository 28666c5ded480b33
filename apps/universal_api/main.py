"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO)

from apps.universal_api.config import config, env_name
from apps.universal_api.db import ensure_tables
from apps.universal_api.routes import entities, fields, health
from apps.universal_api.services.auth import auth_middleware
from apps.universal_api.services.errors import (
    DuplicateField,
    RecordNotFound,
    UniversalAPIError,
    VersionConflict,
)

logger = logging.getLogger(__name__)


def status_for(exc: UniversalAPIError) -> int:
    """HTTP status per error kind: not found 404, concurrency/duplicates 409, everything else caller-fixable 422."""
    if isinstance(exc, RecordNotFound):
        return 404
    if isinstance(exc, (VersionConflict, DuplicateField)):
        return 409
    return 422


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure tables exist on startup when no migrations are used (ensure_tables strategy)."""
    ensure_tables()
    yield


app = FastAPI(
    title="Universal Entity API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(CORSMiddleware, allow_origins=config.CORS_ALLOW_ORIGINS, allow_methods=["*"], allow_headers=["*"])
app.middleware("http")(auth_middleware)


@app.exception_handler(UniversalAPIError)
async def universal_api_error_handler(request: Request, exc: UniversalAPIError) -> JSONResponse:
    status = status_for(exc)
    logger.info("request failed path=%s status=%s error=%s", request.url.path, status, exc.code)
    return JSONResponse(status_code=status, content=exc.to_dict())


app.include_router(health.router, tags=["health"])
app.include_router(entities.router, prefix="/entities", tags=["entities"])
app.include_router(fields.router, prefix="/fields", tags=["fields"])

if env_name() == "test":
    from apps.universal_api.routes import debug

    app.include_router(debug.router, prefix="/debug", tags=["debug"])
