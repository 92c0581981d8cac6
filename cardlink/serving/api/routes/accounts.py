"""
Accounts API Endpoints

Cursor-paginated account listing with substring filters.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from cardlink.database.connection import get_db_dependency
from cardlink.registry import AccountDirectory
from cardlink.serving.api.schemas import AccountListResponse, AccountSummary

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("", response_model=AccountListResponse)
async def list_accounts(
    limit: int = 50,
    cursor: Optional[str] = None,
    search: Optional[str] = None,
    company: Optional[str] = None,
    db: AsyncSession = Depends(get_db_dependency),
) -> AccountListResponse:
    """List accounts, newest first."""
    page = await AccountDirectory(db).list_accounts(
        limit=limit,
        cursor=cursor,
        search=search,
        company=company,
    )
    logger.info("Accounts listed", count=len(page.items), has_more=page.has_more)
    return AccountListResponse(
        items=[AccountSummary.model_validate(account) for account in page.items],
        has_more=page.has_more,
        next_cursor=page.next_cursor,
    )
