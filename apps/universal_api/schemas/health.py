"""Health check response schemas."""

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Health check response. No tenant, no DB round trip."""

    model_config = ConfigDict(extra="forbid")

    ok: bool
    service: str
    version: str
    time: str
