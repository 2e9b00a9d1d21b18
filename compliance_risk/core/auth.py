"""
Bearer-token checks for the compliance API.

Scheduler and admin-portal tokens are RS256 JWTs issued by Keycloak. Signing
keys come from the realm's JWKS endpoint and are cached for
`jwks_cache_seconds`; a token signed with a key id we have not seen triggers
one refetch, so key rotation does not need a restart.

AUTH_ENABLED=false (local development) swaps in a dev identity that holds
the admin role.
"""
from __future__ import annotations

import time
from typing import Optional

import httpx
import structlog
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from compliance_risk.core.config import Settings, get_settings

logger = structlog.get_logger()
bearer = HTTPBearer(auto_error=False)


class JwksCache:

    def __init__(self):
        self._keys: dict[str, dict] = {}
        self._fetched_at = 0.0

    def _stale(self, ttl: int) -> bool:
        return not self._keys or time.monotonic() - self._fetched_at > ttl

    async def refresh(self, settings: Settings) -> None:
        url = f"{settings.keycloak_url}/protocol/openid-connect/certs"
        async with httpx.AsyncClient(timeout=5.0) as client:
            resp = await client.get(url)
            resp.raise_for_status()
        self._keys = {k["kid"]: k for k in resp.json().get("keys", []) if "kid" in k}
        self._fetched_at = time.monotonic()
        logger.info("jwks_refreshed", keys=len(self._keys))

    async def key_for(self, kid: Optional[str], settings: Settings) -> Optional[dict]:
        if self._stale(settings.jwks_cache_seconds) or kid not in self._keys:
            await self.refresh(settings)
        return self._keys.get(kid)


jwks_cache = JwksCache()


def token_roles(payload: dict) -> list[str]:
    """Roles from a flat `roles` claim or Keycloak's `realm_access.roles`."""
    roles = payload.get("roles")
    if roles is None:
        roles = payload.get("realm_access", {}).get("roles", [])
    return list(roles)


async def verify_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer),
    settings: Settings = Depends(get_settings),
) -> dict:
    """FastAPI dependency: the decoded claims of a valid bearer token."""
    if not settings.auth_enabled:
        return {"sub": "dev-user", "roles": [settings.admin_role]}

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    try:
        kid = jwt.get_unverified_header(credentials.credentials).get("kid")
        key = await jwks_cache.key_for(kid, settings)
        if key is None:
            raise HTTPException(status_code=401, detail="Invalid token signing key")
        return jwt.decode(
            credentials.credentials,
            key,
            algorithms=["RS256"],
            audience=settings.keycloak_audience,
            issuer=settings.keycloak_url,
        )
    except JWTError as e:
        logger.warning("jwt_validation_failed", error=str(e))
        raise HTTPException(status_code=401, detail=f"Token validation failed: {e}")
    except httpx.HTTPError as e:
        logger.error("jwks_fetch_failed", error=str(e))
        raise HTTPException(status_code=503, detail="Identity provider unavailable")


async def require_admin(
    token_payload: dict = Depends(verify_token),
    settings: Settings = Depends(get_settings),
) -> dict:
    """FastAPI dependency: a valid token carrying the admin role."""
    if settings.admin_role not in token_roles(token_payload):
        logger.warning("admin_access_denied", caller=token_payload.get("sub", "unknown"))
        raise HTTPException(status_code=403, detail="Admin role required")
    return token_payload
