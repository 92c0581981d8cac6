"""
Identity Proof Verification

The identity provider's token verification is consumed as an opaque
capability: anything that turns a proof string into a verified external
identity can be plugged in. The default implementation checks the proof as
a signed JWT (the shape of provider ID tokens) with python-jose.
"""

from dataclasses import dataclass
from typing import List, Optional, Protocol

import structlog
from jose import JWTError, jwt

from cardlink.config.settings import IdentitySettings
from cardlink.errors import AuthError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    """Identity asserted by a valid proof"""
    external_id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class IdentityVerifier(Protocol):
    async def verify(self, proof: str) -> VerifiedIdentity:
        """Return the proven identity or raise AuthError"""
        ...


class JWTIdentityVerifier:
    """
    Verifies identity proofs that are signed JWTs.

    ``sub`` is the external identity id; ``email``, ``name`` and ``picture``
    are optional profile claims.
    """

    def __init__(
        self,
        key: str,
        algorithms: List[str],
        audience: Optional[str] = None,
        issuer: Optional[str] = None,
    ):
        self.key = key
        self.algorithms = algorithms
        self.audience = audience
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: IdentitySettings) -> "JWTIdentityVerifier":
        return cls(
            key=settings.proof_key.get_secret_value(),
            algorithms=settings.proof_algorithms,
            audience=settings.audience,
            issuer=settings.issuer,
        )

    async def verify(self, proof: str) -> VerifiedIdentity:
        if not proof:
            raise AuthError("Identity proof is required")

        try:
            claims = jwt.decode(
                proof,
                self.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            logger.info("Identity proof rejected", reason=str(e))
            raise AuthError("Invalid or expired token") from e

        external_id = claims.get("sub")
        if not external_id:
            raise AuthError("Identity proof has no subject")

        return VerifiedIdentity(
            external_id=external_id,
            email=claims.get("email"),
            display_name=claims.get("name"),
            photo_url=claims.get("picture"),
        )
