"""
Analytics API Endpoints

Dashboard report over all accounts and the engagement report of a single
account. Both are computed on demand.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from cardlink.analytics import AccountAnalytics, AccountReport, AnalyticsEngine, AnalyticsReport
from cardlink.config import get_settings
from cardlink.database.connection import get_db_dependency

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("", response_model=AnalyticsReport)
async def get_analytics(
    db: AsyncSession = Depends(get_db_dependency),
) -> AnalyticsReport:
    """Point-in-time report over all accounts."""
    return await AnalyticsEngine(db, get_settings().analytics).compute_report()


@router.get("/accounts/{account_id}", response_model=AccountReport)
async def get_account_analytics(
    account_id: str,
    db: AsyncSession = Depends(get_db_dependency),
) -> AccountReport:
    """Engagement statistics, trends and chart series of one account."""
    report = await AccountAnalytics(db, get_settings().analytics).compute_account_report(account_id)
    logger.info("Account analytics computed", account_id=account_id)
    return report
