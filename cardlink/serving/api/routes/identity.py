"""
Identity Endpoints

Google account linking, login and session token verification.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.database.connection import get_db_dependency
from cardlink.identity import AccountClaims, IdentityLinker, IdentityVerifier, SessionTokenService
from cardlink.serving.api.dependencies import (
    get_current_claims,
    get_identity_verifier,
    get_token_service,
)
from cardlink.serving.api.schemas import (
    LinkIdentityRequest,
    LinkResponse,
    LoginRequest,
    LoginResponse,
    PublicProfile,
    TokenClaims,
    VerifyResponse,
)

router = APIRouter()


def get_linker(
    db: AsyncSession = Depends(get_db_dependency),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    tokens: SessionTokenService = Depends(get_token_service),
) -> IdentityLinker:
    return IdentityLinker(db, verifier, tokens)


@router.post("/link", response_model=LinkResponse)
async def link_identity(
    body: LinkIdentityRequest,
    linker: IdentityLinker = Depends(get_linker),
) -> LinkResponse:
    """Link a Google account to the account behind a registration link."""
    result = await linker.link(
        account_id=body.account_id,
        slug=body.slug,
        external_id=body.external_id,
        email=body.email,
        proof=body.proof,
        display_name=body.display_name,
        photo_url=body.photo_url,
    )
    return LinkResponse(
        account_id=result.account_id,
        linked=result.linked,
        url_slug=result.url_slug,
        google_email=result.google_email,
    )


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    linker: IdentityLinker = Depends(get_linker),
) -> LoginResponse:
    result = await linker.login(body.proof)
    return LoginResponse(
        token=result.token,
        google_email=result.google_email,
        account=PublicProfile.model_validate(result.profile),
    )


@router.get("/verify", response_model=VerifyResponse)
async def verify_token(claims: AccountClaims = Depends(get_current_claims)) -> VerifyResponse:
    return VerifyResponse(valid=True, claims=TokenClaims.model_validate(claims))
