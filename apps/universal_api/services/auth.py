"""Auth middleware: the caller's organization (tenant) and actor come from the Authorization header.

Accepted credentials:
  Bearer tenant:<org>[;actor:<user>]   (also tenant=<org>, actor=<user>)
  Bearer <jwt>                          claims tenant_id or organization_id; sub is the actor

organization_id sent in a body, query string or other header is never trusted. The one exception is
X-Tenant-Debug, honoured only when ENV=test and ENABLE_TEST_TENANT_HEADER is on.
"""

import logging
import re
from typing import NamedTuple

import jwt as pyjwt
from starlette.requests import Request
from starlette.responses import JSONResponse

from apps.universal_api.config import config, env_name

logger = logging.getLogger(__name__)

TENANT_TOKEN = re.compile(r"^tenant[:=]([^;]+?)(?:\s*;\s*actor[:=](.+))?$", re.IGNORECASE)

DEBUG_TENANT_HEADER = "X-Tenant-Debug"

PUBLIC_PATHS = frozenset({"/health", "/docs", "/openapi.json"})


class Identity(NamedTuple):
    tenant_id: str
    actor_id: str | None = None


def debug_header_enabled() -> bool:
    """Never in production; in test only with ENABLE_TEST_TENANT_HEADER."""
    env = env_name()
    if env in ("production", "prod"):
        return False
    return env == "test" and config.ENABLE_TEST_TENANT_HEADER


def _clean(value) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def _identity_from_jwt(token: str) -> Identity | None:
    """HS256 with JWT_SECRET when set; unverified claims otherwise (dev/test)."""
    secret = config.JWT_SECRET
    try:
        if secret:
            claims = pyjwt.decode(token, secret, algorithms=["HS256"])
        else:
            claims = pyjwt.decode(token, options={"verify_signature": False})
    except pyjwt.PyJWTError as e:
        logger.info("jwt rejected reason=%s", e)
        return None
    tenant = _clean(claims.get("tenant_id") or claims.get("organization_id"))
    return Identity(tenant, _clean(claims.get("sub"))) if tenant else None


def identity_from_authorization(header: str | None) -> Identity | None:
    scheme, _, credentials = (header or "").strip().partition(" ")
    credentials = credentials.strip()
    if scheme.lower() != "bearer" or not credentials:
        return None
    m = TENANT_TOKEN.match(credentials)
    if m:
        tenant = _clean(m.group(1))
        return Identity(tenant, _clean(m.group(2))) if tenant else None
    return _identity_from_jwt(credentials)


def resolve_identity(request: Request) -> Identity | None:
    """Authorization wins; the debug header is only consulted when it yields nothing."""
    identity = identity_from_authorization(request.headers.get("Authorization"))
    if identity is None and debug_header_enabled():
        tenant = _clean(request.headers.get(DEBUG_TENANT_HEADER))
        identity = Identity(tenant) if tenant else None
    return identity


async def auth_middleware(request: Request, call_next):
    path = request.url.path.rstrip("/") or "/"
    if path in PUBLIC_PATHS:
        return await call_next(request)

    identity = resolve_identity(request)
    if identity is None:
        logger.info("auth rejected path=%s reason=no_tenant", path)
        return JSONResponse(
            status_code=401,
            content={
                "error": "tenant_required",
                "message": "Use Authorization: Bearer tenant:<org> or a JWT with a tenant_id claim",
            },
        )

    request.state.tenant_id = identity.tenant_id
    if identity.actor_id:
        request.state.actor_id = identity.actor_id
    return await call_next(request)
