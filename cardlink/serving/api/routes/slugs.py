"""
Slug Endpoints

Public URL registration, resolution of public card links and slug
deactivation.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from cardlink.config import get_settings
from cardlink.database.connection import get_db_dependency
from cardlink.engagement import RequestMeta, track_view_best_effort
from cardlink.registry import SlugRegistry, resolve_public_base_url
from cardlink.serving.api.dependencies import get_request_meta
from cardlink.serving.api.schemas import (
    DeactivateSlugResponse,
    PublicProfile,
    RegisterSlugRequest,
    ResolveSlugResponse,
    SlugResponse,
)

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/slug", response_model=SlugResponse)
async def register_slug(
    body: RegisterSlugRequest,
    request: Request,
    db: AsyncSession = Depends(get_db_dependency),
) -> SlugResponse:
    """Generate and store the public URL of an account."""
    settings = get_settings()
    base_url = resolve_public_base_url(
        settings.public_urls,
        origin=request.headers.get("origin"),
        referer=request.headers.get("referer"),
    )
    registry = SlugRegistry(db, card_path=settings.public_urls.card_path)
    registration = await registry.register_slug(body.account_id, base_url)
    return SlugResponse(
        account_id=registration.account_id,
        slug=registration.slug,
        public_url=registration.public_url,
    )


@router.get("/slug/{slug}", response_model=ResolveSlugResponse)
async def resolve_slug(
    slug: str,
    background_tasks: BackgroundTasks,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_dependency),
) -> ResolveSlugResponse:
    """
    Resolve a public card link.

    The view is counted after the response is produced; a tracking failure
    never changes the response.
    """
    account = await SlugRegistry(db).resolve_slug(slug)
    profile = PublicProfile.model_validate(account.public_profile())

    background_tasks.add_task(track_view_best_effort, account.id, slug, meta)
    logger.info("Slug resolved", slug=slug, account_id=account.id)
    return ResolveSlugResponse(slug=slug, account=profile)


@router.post("/slug/{slug}/deactivate", response_model=DeactivateSlugResponse)
async def deactivate_slug(
    slug: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> DeactivateSlugResponse:
    mapping = await SlugRegistry(db).deactivate_slug(slug)
    return DeactivateSlugResponse(slug=mapping.slug, active=mapping.is_active)
