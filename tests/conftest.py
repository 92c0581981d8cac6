"""
Test Suite Configuration
"""
import os

os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ["RATE_LIMIT_REQUESTS"] = "100000"

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.config import get_settings
from cardlink.database.connection import close_database, get_db, init_database
from cardlink.identity import JWTIdentityVerifier, SessionTokenService
from cardlink.registry import AccountDirectory

get_settings.cache_clear()

PROOF_KEY = "test-identity-proof-key"
SESSION_KEY = "test-session-secret"


def sign_proof(
    external_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    picture: Optional[str] = None,
    expires_in: timedelta = timedelta(hours=1),
    key: str = PROOF_KEY,
    **extra,
) -> str:
    """Identity proof shaped like a provider ID token"""
    now = datetime.now(timezone.utc)
    claims = {
        "sub": external_id,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_in).timestamp()),
    }
    if email:
        claims["email"] = email
    if name:
        claims["name"] = name
    if picture:
        claims["picture"] = picture
    claims.update(extra)
    return jwt.encode(claims, key, algorithm="HS256")


@pytest.fixture
def verifier() -> JWTIdentityVerifier:
    return JWTIdentityVerifier(PROOF_KEY, ["HS256"])


@pytest.fixture
def tokens() -> SessionTokenService:
    return SessionTokenService(SESSION_KEY)


@pytest.fixture
async def database(tmp_path):
    """Fresh SQLite database file per test"""
    url = f"sqlite+aiosqlite:///{tmp_path / 'cardlink.db'}"
    await init_database(url, create_schema=True)
    yield url
    await close_database()


@pytest.fixture
async def test_db(database) -> AsyncGenerator[AsyncSession, None]:
    """Database session for the test body"""
    async with get_db() as session:
        yield session


@pytest.fixture
def make_account(test_db):
    """Create accounts with sensible profile defaults"""
    async def _make(**fields):
        fields.setdefault("full_name", "Jane Doe")
        fields.setdefault("display_name", fields["full_name"])
        fields.setdefault("email_address", "jane@example.com")
        fields.setdefault("primary_contact_number", "+1 555 0100")
        return await AccountDirectory(test_db).create_account(**fields)
    return _make


@pytest.fixture
async def client(database, verifier, tokens) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to a fresh app; lifespan is not run"""
    from cardlink.serving.api import create_api_app
    from cardlink.serving.api.dependencies import get_identity_verifier, get_token_service

    app = create_api_app()
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    app.dependency_overrides[get_token_service] = lambda: tokens

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http


@pytest.fixture
def make_proof():
    return sign_proof
