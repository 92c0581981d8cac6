"""
API Dependencies

Providers injected into route handlers with ``Depends``. Tests replace
them through ``app.dependency_overrides``.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cardlink.config import get_settings
from cardlink.engagement import RequestMeta
from cardlink.errors import AuthError
from cardlink.identity import (
    AccountClaims,
    IdentityVerifier,
    JWTIdentityVerifier,
    SessionTokenService,
)

# Security scheme
security = HTTPBearer(auto_error=False)


def get_identity_verifier() -> IdentityVerifier:
    return JWTIdentityVerifier.from_settings(get_settings().identity)


def get_token_service() -> SessionTokenService:
    return SessionTokenService.from_settings(get_settings().security)


async def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    tokens: SessionTokenService = Depends(get_token_service),
) -> AccountClaims:
    """
    Claims of the bearer session token.

    Raises 401 if no token or invalid token.
    """
    if not credentials:
        raise AuthError("No token provided")
    return tokens.verify_token(credentials.credentials)


def get_request_meta(request: Request) -> RequestMeta:
    """User agent, referer and client address of the calling request"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return RequestMeta(
        user_agent=request.headers.get("user-agent"),
        referer=request.headers.get("referer"),
        ip=ip,
    )
