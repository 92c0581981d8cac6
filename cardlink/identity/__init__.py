"""
Identity Module
"""
from .linker import IdentityLinker, LinkResult, LoginResult
from .tokens import SessionTokenService, AccountClaims
from .verifier import IdentityVerifier, JWTIdentityVerifier, VerifiedIdentity

__all__ = [
    "IdentityLinker",
    "LinkResult",
    "LoginResult",
    "SessionTokenService",
    "AccountClaims",
    "IdentityVerifier",
    "JWTIdentityVerifier",
    "VerifiedIdentity",
]
