"""
Slug Registry

Derives human-readable public slugs from account display names, keeps the
slug -> account mapping table in step with the account row and resolves
slugs back to accounts.
"""

import re
from typing import Optional, Tuple
from dataclasses import dataclass
from urllib.parse import urlsplit

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.config.settings import PublicUrlSettings
from cardlink.database.models import Account, SlugMapping, utcnow
from cardlink.errors import ConflictError, NotFoundError, StoreError, ValidationError

logger = structlog.get_logger(__name__)

SLUG_SUFFIX_LENGTH = 6

_INVALID_CHARS = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def generate_slug(display_name: str, account_id: str, suffix_length: int = SLUG_SUFFIX_LENGTH) -> str:
    """
    Build a URL-safe slug such as ``jane-doe-3f9a1c``.

    Lower-cases the name, drops everything outside ``[a-z0-9\\s-]``, turns
    whitespace runs into single hyphens, collapses repeated hyphens, trims
    edge hyphens and appends the first ``suffix_length`` characters of the
    account id. A name with nothing usable left yields the bare suffix
    (``3f9a1c``, never ``-3f9a1c``).
    """
    base = _INVALID_CHARS.sub("", display_name.lower())
    base = _WHITESPACE.sub("-", base.strip())
    base = _HYPHENS.sub("-", base).strip("-")

    suffix = account_id[:suffix_length]
    if not base:
        return suffix
    return f"{base}-{suffix}"


def _suffix_lengths(account_id: str):
    """Suffix lengths tried in order when a shorter slug is already taken"""
    lengths = list(range(SLUG_SUFFIX_LENGTH, len(account_id), 2))
    lengths.append(len(account_id))
    return lengths


def build_public_url(base_url: str, slug: str, card_path: str = "card") -> str:
    return f"{base_url.rstrip('/')}/{card_path.strip('/')}/{slug}"


def resolve_public_base_url(
    settings: PublicUrlSettings,
    origin: Optional[str] = None,
    referer: Optional[str] = None,
) -> str:
    """
    Pick the base URL for public card links.

    Configured PUBLIC_URL wins, then the caller's Origin header, then the
    scheme and host of its Referer, then the configured default.
    """
    if settings.public_url:
        return settings.public_url.rstrip("/")
    if origin and origin != "null":
        return origin.rstrip("/")
    if referer:
        parts = urlsplit(referer)
        if parts.scheme and parts.netloc:
            return f"{parts.scheme}://{parts.netloc}"
    return settings.default_public_url.rstrip("/")


@dataclass
class SlugRegistration:
    """Result of a successful slug registration"""
    account_id: str
    slug: str
    public_url: str
    full_name: str


class SlugRegistry:
    """
    Slug registration, resolution and deactivation.

    A slug is derived deterministically from the display name and account
    id. Before writing, the candidate is checked against existing mappings
    and the id suffix is lengthened until it no longer collides with a slug
    owned by another account.
    """

    def __init__(self, db: AsyncSession, card_path: str = "card"):
        self.db = db
        self.card_path = card_path

    async def _claim_slug(self, account: Account) -> Tuple[str, Optional[SlugMapping]]:
        for length in _suffix_lengths(account.id):
            candidate = generate_slug(account.full_name, account.id, suffix_length=length)
            mapping = await self.db.get(SlugMapping, candidate)
            if mapping is None or mapping.account_id == account.id:
                return candidate, mapping
            logger.warning(
                "Slug collision, lengthening suffix",
                slug=candidate,
                account_id=account.id,
                holder=mapping.account_id,
            )
        raise ConflictError("No free slug available for this account", {"account_id": account.id})

    async def register_slug(self, account_id: str, base_url: str) -> SlugRegistration:
        """
        Generate the account's slug and public URL and store both mappings.

        Raises:
            NotFoundError: Account does not exist
            ValidationError: Account has no display name
            ConflictError: Slug is held by another account
        """
        account = await self.db.get(Account, account_id)
        if account is None:
            raise NotFoundError("User not found", {"account_id": account_id})
        if not (account.full_name or "").strip():
            raise ValidationError("User missing required fullName field", {"account_id": account_id})

        slug, mapping = await self._claim_slug(account)
        now = utcnow()

        previous = account.url_slug
        if previous and previous != slug:
            await self.db.execute(
                update(SlugMapping)
                .where(SlugMapping.slug == previous, SlugMapping.account_id == account.id)
                .values(is_active=False, updated_at=now)
            )
            logger.info("Superseded slug deactivated", slug=previous, account_id=account.id)

        public_url = build_public_url(base_url, slug, self.card_path)
        account.url_slug = slug
        account.public_url = public_url
        account.updated_at = now

        if mapping is None:
            self.db.add(SlugMapping(
                slug=slug,
                account_id=account.id,
                full_name=account.full_name,
                is_active=True,
                created_at=now,
                updated_at=now,
            ))
        else:
            mapping.full_name = account.full_name
            mapping.is_active = True
            mapping.updated_at = now

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning("Slug claimed concurrently", slug=slug, account_id=account_id)
            raise ConflictError("Slug is already taken", {"slug": slug}) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Slug registration failed", account_id=account_id, error=str(e))
            raise StoreError("Failed to store slug mapping") from e

        logger.info("Public URL generated", account_id=account_id, slug=slug, public_url=public_url)
        return SlugRegistration(
            account_id=account_id,
            slug=slug,
            public_url=public_url,
            full_name=account.full_name,
        )

    async def resolve_slug(self, slug: str) -> Account:
        """
        Return the account behind an active slug.

        Raises:
            NotFoundError: Slug unknown, inactive, or its account is gone
        """
        mapping = await self.db.get(SlugMapping, slug)
        if mapping is None:
            raise NotFoundError("URL not found", {"slug": slug})
        if not mapping.is_active:
            raise NotFoundError("URL is no longer active", {"slug": slug})

        account = await self.db.get(Account, mapping.account_id)
        if account is None:
            logger.error("Slug mapping points at missing account", slug=slug, account_id=mapping.account_id)
            raise NotFoundError("User data not found", {"slug": slug})
        return account

    async def deactivate_slug(self, slug: str) -> SlugMapping:
        """Mark a slug inactive. Deactivating an inactive slug is a no-op."""
        mapping = await self.db.get(SlugMapping, slug)
        if mapping is None:
            raise NotFoundError("URL not found", {"slug": slug})

        if mapping.is_active:
            mapping.is_active = False
            mapping.updated_at = utcnow()
            await self.db.commit()
            logger.info("Slug deactivated", slug=slug, account_id=mapping.account_id)
        return mapping
