"""
Session Tokens

HMAC-signed JWT session tokens for linked accounts. A token carries the
account id, email, role and issue time in epoch milliseconds, expires a
fixed number of days after issue and is verified without a store round
trip.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from jose import JWTError, jwt

from cardlink.config.settings import SecuritySettings
from cardlink.database.models import utcnow
from cardlink.errors import AuthError

logger = structlog.get_logger(__name__)


def _epoch_ms(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)


@dataclass(frozen=True)
class AccountClaims:
    """Verified contents of a session token"""
    account_id: str
    email: str
    role: str
    issued_at_epoch_ms: int

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.issued_at_epoch_ms / 1000, tz=timezone.utc).replace(tzinfo=None)


class SessionTokenService:
    """
    Issues and verifies session tokens.

    Example:
        tokens = SessionTokenService.from_settings(settings.security)
        token = tokens.issue_token(account.id, account.email_address)
        claims = tokens.verify_token(token)
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        ttl: timedelta = timedelta(days=7),
        role: str = "user",
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl
        self.role = role

    @classmethod
    def from_settings(cls, settings: SecuritySettings) -> "SessionTokenService":
        return cls(
            secret_key=settings.jwt_secret_key.get_secret_value(),
            algorithm=settings.jwt_algorithm,
            ttl=timedelta(days=settings.session_token_ttl_days),
            role=settings.session_role,
        )

    def issue_token(self, account_id: str, email: Optional[str], now: Optional[datetime] = None) -> str:
        issued_at = now or utcnow()
        issued_ms = _epoch_ms(issued_at)
        claims: Dict[str, Any] = {
            "sub": account_id,
            "email": email or "",
            "role": self.role,
            "iat_ms": issued_ms,
            "iat": issued_ms // 1000,
            "exp": (issued_ms + int(self.ttl.total_seconds() * 1000)) // 1000,
        }
        return jwt.encode(claims, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str, now: Optional[datetime] = None) -> AccountClaims:
        """
        Verify signature, role and age of a session token.

        Raises:
            AuthError: Malformed, forged, wrong role or older than the TTL
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTError as e:
            logger.info("Session token rejected", reason=str(e))
            raise AuthError("Invalid token") from e

        account_id = payload.get("sub")
        issued_ms = payload.get("iat_ms")
        role = payload.get("role")
        if not account_id or not isinstance(issued_ms, int) or isinstance(issued_ms, bool):
            raise AuthError("Malformed token")
        if role != self.role:
            raise AuthError("Invalid token role")

        # expiry is judged against the caller's clock, not the wall clock
        now_ms = _epoch_ms(now or utcnow())
        expires = payload.get("exp")
        if now_ms - issued_ms > self.ttl.total_seconds() * 1000:
            raise AuthError("Token expired")
        if isinstance(expires, int) and now_ms > expires * 1000:
            raise AuthError("Token expired")

        return AccountClaims(
            account_id=account_id,
            email=payload.get("email") or "",
            role=role,
            issued_at_epoch_ms=issued_ms,
        )
