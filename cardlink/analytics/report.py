"""
Analytics Engine

Builds the point-in-time dashboard report. The account table is scanned
once and loaded into a polars frame for the windowed counts and company
grouping; the newest view events are read separately and joined in memory
against the scanned accounts.

Failure policy:
- account scan failure is fatal (StoreError)
- aggregate read failure falls back to summing account counters
- recent-event read failure yields an empty ``recent_views`` list
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import polars as pl
import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.analytics.models import (
    AnalyticsReport,
    CompanyCount,
    MonthlyRegistrations,
    RecentView,
    RegistrationEntry,
    ViewedCard,
)
from cardlink.analytics.windows import month_label, round_half_up, trailing_months
from cardlink.config.settings import AnalyticsSettings
from cardlink.database.models import (
    GLOBAL_AGGREGATE_KEY,
    Account,
    GlobalAggregate,
    ViewEvent,
    utcnow,
)
from cardlink.errors import StoreError

logger = structlog.get_logger(__name__)

INDEPENDENT = "Independent"

ACCOUNT_SCHEMA = {
    "id": pl.String,
    "full_name": pl.String,
    "email_address": pl.String,
    "primary_contact_number": pl.String,
    "phone_number": pl.String,
    "company": pl.String,
    "created_at": pl.Datetime("us"),
    "total_views": pl.Int64,
    "total_contact_saves": pl.Int64,
}


# =============================================================================
# FRAME COMPUTATIONS
# =============================================================================

def accounts_frame(accounts: Sequence[Account]) -> pl.DataFrame:
    """One row per account in scan order; missing company becomes ``Independent``"""
    rows = [
        {
            "id": account.id,
            "full_name": account.full_name,
            "email_address": account.email_address,
            "primary_contact_number": account.primary_contact_number,
            "phone_number": account.phone_number,
            "company": account.company_name or INDEPENDENT,
            "created_at": account.created_at,
            "total_views": account.total_views or 0,
            "total_contact_saves": account.total_contact_saves or 0,
        }
        for account in accounts
    ]
    return pl.DataFrame(rows, schema=ACCOUNT_SCHEMA)


def _filled(column: str) -> pl.Expr:
    return pl.col(column).fill_null("") != ""


def count_active(frame: pl.DataFrame) -> int:
    """Accounts with a name, an email and a phone number of either kind"""
    return frame.filter(
        _filled("full_name")
        & _filled("email_address")
        & (_filled("primary_contact_number") | _filled("phone_number"))
    ).height


def count_created_between(frame: pl.DataFrame, start: datetime, end: datetime, closed: str = "left") -> int:
    return frame.filter(pl.col("created_at").is_between(start, end, closed=closed)).height


def growth_rate(recent: int, previous: int) -> str:
    """Period-over-period growth as a whole percentage string"""
    if previous > 0:
        return f"{round_half_up((recent - previous) / previous * 100)}%"
    if recent > 0:
        return "100%"
    return "0%"


def top_companies(frame: pl.DataFrame, limit: int) -> List[CompanyCount]:
    """Largest companies by account count; ties keep first-seen order"""
    grouped = (
        frame.group_by("company", maintain_order=True)
        .agg(pl.len().alias("count"))
        .sort("count", descending=True, maintain_order=True)
        .head(limit)
    )
    return [CompanyCount(name=row["company"], count=row["count"]) for row in grouped.to_dicts()]


def monthly_registrations(frame: pl.DataFrame, as_of: datetime, months: int) -> List[MonthlyRegistrations]:
    return [
        MonthlyRegistrations(
            month=month_label(start),
            registrations=count_created_between(frame, start, end),
        )
        for start, end in trailing_months(as_of, months)
    ]


def counter_totals(frame: pl.DataFrame) -> Tuple[int, int]:
    return int(frame["total_views"].sum()), int(frame["total_contact_saves"].sum())


# =============================================================================
# ENGINE
# =============================================================================

class AnalyticsEngine:
    """
    Dashboard analytics over the whole account base.

    Example:
        engine = AnalyticsEngine(db, settings.analytics)
        report = await engine.compute_report()
    """

    def __init__(self, db: AsyncSession, settings: Optional[AnalyticsSettings] = None):
        self.db = db
        self.settings = settings or AnalyticsSettings()

    async def _scan_accounts(self) -> List[Account]:
        try:
            result = await self.db.execute(
                select(Account)
                .order_by(Account.created_at, Account.id)
                .execution_options(populate_existing=True)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Account scan failed", error=str(e))
            raise StoreError("Failed to fetch analytics data") from e

    async def _global_totals(self, frame: pl.DataFrame) -> Tuple[int, int]:
        try:
            aggregate = await self.db.get(GlobalAggregate, GLOBAL_AGGREGATE_KEY)
        except SQLAlchemyError as e:
            logger.error("Error fetching profile views", error=str(e))
            aggregate = None

        if aggregate is None:
            return counter_totals(frame)
        return aggregate.total_profile_views, aggregate.total_contact_saves

    async def _recent_views(self, names: Dict[str, str], as_of: datetime) -> List[RecentView]:
        try:
            result = await self.db.execute(
                select(ViewEvent)
                .where(ViewEvent.timestamp <= as_of)
                .order_by(ViewEvent.timestamp.desc(), ViewEvent.id.desc())
                .limit(self.settings.recent_views_limit)
            )
            events = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Error fetching recent views", error=str(e))
            return []

        views = []
        for event in events:
            views.append(RecentView(
                account_id=event.account_id,
                full_name=names.get(event.account_id, "Unknown User"),
                viewed_at=event.timestamp,
                slug=event.slug,
            ))
        return views

    async def compute_report(self, as_of: Optional[datetime] = None) -> AnalyticsReport:
        """
        Compute the dashboard report as of ``as_of`` (default: now).

        Raises:
            StoreError: The account scan failed
        """
        as_of = as_of or utcnow()
        window = timedelta(days=self.settings.recent_window_days)

        accounts = await self._scan_accounts()
        frame = accounts_frame(accounts)

        recent_users = count_created_between(frame, as_of - window, as_of, closed="both")
        previous_users = count_created_between(frame, as_of - 2 * window, as_of - window)

        newest = sorted(accounts, key=lambda a: a.created_at, reverse=True)
        recent_registrations = [
            RegistrationEntry(
                id=account.id,
                full_name=account.name_for_display,
                company_name=account.company_name,
                created_at=account.created_at,
            )
            for account in newest[: self.settings.recent_registrations_limit]
        ]

        most_viewed = sorted(
            (a for a in accounts if (a.total_views or 0) > 0),
            key=lambda a: a.total_views,
            reverse=True,
        )
        top_viewed = [
            ViewedCard(
                id=account.id,
                full_name=account.name_for_display,
                company_name=account.company_name,
                total_views=account.total_views,
                last_viewed_at=account.last_viewed_at,
            )
            for account in most_viewed[: self.settings.top_viewed_limit]
        ]

        # optional reads last: account rows are fully consumed by now
        names = {account.id: account.name_for_display for account in accounts}
        total_views, total_saves = await self._global_totals(frame)
        recent_views = await self._recent_views(names, as_of)

        report = AnalyticsReport(
            total_users=frame.height,
            active_users=count_active(frame),
            total_profile_views=total_views,
            total_contact_saves=total_saves,
            recent_users=recent_users,
            previous_period_users=previous_users,
            growth_rate=growth_rate(recent_users, previous_users),
            top_companies=top_companies(frame, self.settings.top_companies_limit),
            recent_registrations=recent_registrations,
            monthly_stats=monthly_registrations(frame, as_of, self.settings.monthly_buckets),
            top_viewed_cards=top_viewed,
            recent_views=recent_views,
            generated_at=utcnow(),
        )
        logger.info(
            "Analytics report computed",
            total_users=report.total_users,
            recent_users=recent_users,
            recent_views=len(recent_views),
        )
        return report
