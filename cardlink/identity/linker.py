"""
Identity Linker

Binds an external identity (a Google account) to exactly one profile
account and logs linked accounts in.

Exclusivity does not rely on the pre-checks: the identity mapping is
created with a primary-key insert (create-if-absent) and the account row is
updated only while its ``google_uid`` is still empty, both inside one
transaction. Whichever concurrent attempt commits first wins; every other
attempt fails with ConflictError.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.database.models import Account, IdentityMapping, utcnow
from cardlink.errors import (
    AuthError,
    ConflictError,
    LinkMismatchError,
    NotFoundError,
    SlugMismatchError,
    StoreError,
)
from cardlink.identity.tokens import SessionTokenService
from cardlink.identity.verifier import IdentityVerifier

logger = structlog.get_logger(__name__)


@dataclass
class LinkResult:
    account_id: str
    url_slug: str
    google_email: str
    linked: bool = True


@dataclass
class LoginResult:
    token: str
    account_id: str
    google_email: Optional[str]
    profile: Dict[str, Any]


class IdentityLinker:
    """
    Identity linking and login.

    Example:
        linker = IdentityLinker(db, verifier, tokens)
        await linker.link(account_id, slug, google_uid, email, id_token)
        result = await linker.login(id_token)
    """

    def __init__(self, db: AsyncSession, verifier: IdentityVerifier, tokens: SessionTokenService):
        self.db = db
        self.verifier = verifier
        self.tokens = tokens

    # ==================== LINKING ====================

    async def link(
        self,
        account_id: str,
        slug: str,
        external_id: str,
        email: str,
        proof: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> LinkResult:
        """
        Link an external identity to an account.

        Raises:
            AuthError: Proof invalid or for a different identity
            NotFoundError: Account does not exist
            SlugMismatchError: Registration link carries a stale or forged slug
            ConflictError: Account already linked, or identity linked elsewhere
        """
        identity = await self.verifier.verify(proof)
        if identity.external_id != external_id:
            logger.warning("Proof does not match external id", account_id=account_id)
            raise AuthError("Token does not match provided Google UID")

        account = await self.db.get(Account, account_id, populate_existing=True)
        if account is None:
            raise NotFoundError("User not found", {"account_id": account_id})
        if account.url_slug != slug:
            raise SlugMismatchError("Invalid registration link")
        if account.google_uid:
            raise ConflictError("This account is already registered with Google. Please login instead.")

        # early answer for the common case; exclusivity comes from the writes below
        existing = await self.db.get(IdentityMapping, external_id)
        if existing is not None or await self._uid_holder(external_id) is not None:
            raise ConflictError("This Google account is already registered with another user")

        now = utcnow()
        try:
            self.db.add(IdentityMapping(
                external_id=external_id,
                account_id=account_id,
                email=email,
                url_slug=slug,
                linked_at=now,
            ))
            await self.db.flush()

            result = await self.db.execute(
                update(Account)
                .where(Account.id == account_id, Account.google_uid.is_(None))
                .values(
                    google_uid=external_id,
                    google_email=email,
                    google_display_name=display_name or identity.display_name,
                    google_photo_url=photo_url or identity.photo_url,
                    is_google_linked=True,
                    registered_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConflictError("This account is already registered with Google. Please login instead.")

            await self.db.commit()
        except ConflictError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Concurrent link lost the race", account_id=account_id)
            raise ConflictError("This Google account is already registered with another user") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Identity link failed", account_id=account_id, error=str(e))
            raise StoreError("Failed to register Google account") from e

        logger.info("Google account linked", account_id=account_id)
        return LinkResult(account_id=account_id, url_slug=slug, google_email=email)

    async def _uid_holder(self, external_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(Account.id).where(Account.google_uid == external_id).limit(1)
        )
        return result.scalar_one_or_none()

    # ==================== LOGIN ====================

    async def login(self, proof: str) -> LoginResult:
        """
        Log a linked account in and issue a session token.

        Raises:
            AuthError: Proof invalid
            NotFoundError: Identity never linked, or its account is gone
            LinkMismatchError: Account no longer holds this identity
        """
        identity = await self.verifier.verify(proof)

        mapping = await self.db.get(IdentityMapping, identity.external_id)
        if mapping is None:
            raise NotFoundError(
                "This Google account is not registered. "
                "Please use the registration link provided by your administrator."
            )

        account = await self.db.get(Account, mapping.account_id, populate_existing=True)
        if account is None:
            raise NotFoundError("User not found", {"account_id": mapping.account_id})
        if account.google_uid != identity.external_id:
            logger.warning("Identity link mismatch", account_id=account.id)
            raise LinkMismatchError("Google account link mismatch")

        now = utcnow()
        account.last_login_at = now
        account.updated_at = now
        await self.db.commit()

        token = self.tokens.issue_token(account.id, account.email_address, now=now)
        logger.info("Login successful", account_id=account.id)

        profile = account.public_profile()
        profile["google_photo_url"] = account.google_photo_url
        return LoginResult(
            token=token,
            account_id=account.id,
            google_email=identity.email,
            profile=profile,
        )
