"""
Unit Tests - Session Tokens and Identity Proofs
"""
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from cardlink.config.settings import SecuritySettings
from cardlink.database.models import utcnow
from cardlink.errors import AuthError
from cardlink.identity import JWTIdentityVerifier, SessionTokenService

NOW = utcnow().replace(microsecond=0)


class TestSessionTokenService:
    """Tests for SessionTokenService"""

    def test_round_trip_claims(self, tokens):
        token = tokens.issue_token("acct-1", "jane@example.com", now=NOW)
        claims = tokens.verify_token(token, now=NOW + timedelta(minutes=5))

        assert claims.account_id == "acct-1"
        assert claims.email == "jane@example.com"
        assert claims.role == "user"
        assert claims.issued_at == NOW

    def test_six_day_old_token_accepted(self, tokens):
        issued = utcnow() - timedelta(days=6)
        token = tokens.issue_token("acct-1", "jane@example.com", now=issued)

        assert tokens.verify_token(token).account_id == "acct-1"

    def test_eight_day_old_token_rejected(self, tokens):
        issued = utcnow() - timedelta(days=8)
        token = tokens.issue_token("acct-1", "jane@example.com", now=issued)

        with pytest.raises(AuthError, match="expired"):
            tokens.verify_token(token)

    def test_age_check_independent_of_exp(self, tokens):
        """A token older than the TTL is rejected even when checked against a later clock"""
        token = tokens.issue_token("acct-1", None, now=NOW)

        with pytest.raises(AuthError):
            tokens.verify_token(token, now=NOW + timedelta(days=7, seconds=1))

    def test_expiry_follows_supplied_clock(self, tokens):
        issued = datetime(2024, 1, 1)
        token = tokens.issue_token("acct-1", "jane@example.com", now=issued)

        assert tokens.verify_token(token, now=issued + timedelta(days=6)).account_id == "acct-1"
        with pytest.raises(AuthError, match="expired"):
            tokens.verify_token(token, now=issued + timedelta(days=8))

    def test_exp_claim_enforced(self, tokens):
        issued_ms = int(NOW.replace(tzinfo=timezone.utc).timestamp() * 1000)
        token = jwt.encode(
            {"sub": "acct-1", "role": "user", "iat_ms": issued_ms, "exp": issued_ms // 1000 + 60},
            tokens.secret_key,
            algorithm="HS256",
        )

        assert tokens.verify_token(token, now=NOW + timedelta(seconds=30)).account_id == "acct-1"
        with pytest.raises(AuthError, match="expired"):
            tokens.verify_token(token, now=NOW + timedelta(minutes=2))

    def test_wrong_role_rejected(self, tokens):
        admin_tokens = SessionTokenService(tokens.secret_key, role="admin")
        token = admin_tokens.issue_token("acct-1", "jane@example.com")

        with pytest.raises(AuthError, match="role"):
            tokens.verify_token(token)

    def test_forged_signature_rejected(self, tokens):
        forged = SessionTokenService("some-other-secret").issue_token("acct-1", "jane@example.com")

        with pytest.raises(AuthError, match="Invalid token"):
            tokens.verify_token(forged)

    def test_garbage_rejected(self, tokens):
        with pytest.raises(AuthError):
            tokens.verify_token("not-a-token")

    def test_missing_issue_time_rejected(self, tokens):
        token = jwt.encode({"sub": "acct-1", "role": "user"}, tokens.secret_key, algorithm="HS256")

        with pytest.raises(AuthError, match="Malformed"):
            tokens.verify_token(token)

    def test_from_settings(self):
        settings = SecuritySettings(JWT_SECRET_KEY="abc", SESSION_TOKEN_TTL_DAYS=2)
        service = SessionTokenService.from_settings(settings)

        assert service.secret_key == "abc"
        assert service.ttl == timedelta(days=2)


class TestJWTIdentityVerifier:
    """Tests for JWTIdentityVerifier"""

    async def test_valid_proof(self, verifier, make_proof):
        proof = make_proof("google-123", email="jane@gmail.com", name="Jane", picture="https://img/1.png")

        identity = await verifier.verify(proof)

        assert identity.external_id == "google-123"
        assert identity.email == "jane@gmail.com"
        assert identity.display_name == "Jane"
        assert identity.photo_url == "https://img/1.png"

    async def test_expired_proof(self, verifier, make_proof):
        proof = make_proof("google-123", expires_in=timedelta(minutes=-5))

        with pytest.raises(AuthError, match="Invalid or expired token"):
            await verifier.verify(proof)

    async def test_wrong_key(self, verifier, make_proof):
        proof = make_proof("google-123", key="attacker-key")

        with pytest.raises(AuthError):
            await verifier.verify(proof)

    async def test_empty_proof(self, verifier):
        with pytest.raises(AuthError):
            await verifier.verify("")

    async def test_audience_enforced(self, make_proof):
        strict = JWTIdentityVerifier("test-identity-proof-key", ["HS256"], audience="cardlink-web")

        with pytest.raises(AuthError):
            await strict.verify(make_proof("google-123", aud="some-other-app"))
