"""
Account Engagement Report

Per-account statistics, trends and chart series built from the newest
view and contact-save events of one account (bounded read).
"""

from datetime import datetime, timedelta
from typing import List, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.analytics.models import (
    AccountReport,
    ActivityEntry,
    ChartData,
    DailyPoint,
    EngagementStatistics,
    EngagementTrends,
    MonthlyPoint,
    ProfileInfo,
    WeeklyPoint,
)
from cardlink.analytics.windows import days_before, month_label, start_of_day, trailing_months
from cardlink.config.settings import AnalyticsSettings
from cardlink.database.models import Account, ContactSaveEvent, ViewEvent, utcnow
from cardlink.errors import NotFoundError

logger = structlog.get_logger(__name__)

DAILY_POINTS = 30
WEEKLY_POINTS = 12
MONTHLY_POINTS = 6
ACTIVITY_PER_TYPE = 10
ACTIVITY_LIMIT = 20


def change_percent(current: int, previous: int) -> str:
    if previous > 0:
        return f"{(current - previous) / previous * 100:.1f}%"
    if current > 0:
        return "+100%"
    return "0%"


def conversion_rate(views: int, saves: int) -> str:
    if views > 0:
        return f"{saves / views * 100:.1f}%"
    return "0%"


def _count_between(timestamps: Sequence[datetime], start: datetime, end: Optional[datetime] = None) -> int:
    return sum(1 for ts in timestamps if ts >= start and (end is None or ts < end))


def daily_series(views: Sequence[datetime], saves: Sequence[datetime], as_of: datetime) -> List[DailyPoint]:
    keys = [(as_of - timedelta(days=offset)).date().isoformat() for offset in range(DAILY_POINTS - 1, -1, -1)]
    buckets = {key: [0, 0] for key in keys}
    for index, timestamps in enumerate((views, saves)):
        for ts in timestamps:
            bucket = buckets.get(ts.date().isoformat())
            if bucket is not None:
                bucket[index] += 1
    return [DailyPoint(date=key, views=buckets[key][0], saves=buckets[key][1]) for key in keys]


def weekly_series(views: Sequence[datetime], saves: Sequence[datetime], as_of: datetime) -> List[WeeklyPoint]:
    points = []
    for offset in range(WEEKLY_POINTS - 1, -1, -1):
        start = start_of_day(as_of - timedelta(days=7 * offset))
        end = start + timedelta(days=7)
        points.append(WeeklyPoint(
            week=start.strftime("%b %d"),
            views=_count_between(views, start, end),
            saves=_count_between(saves, start, end),
        ))
    return points


def monthly_series(views: Sequence[datetime], saves: Sequence[datetime], as_of: datetime) -> List[MonthlyPoint]:
    return [
        MonthlyPoint(
            month=month_label(start),
            views=_count_between(views, start, end),
            saves=_count_between(saves, start, end),
        )
        for start, end in trailing_months(as_of, MONTHLY_POINTS)
    ]


class AccountAnalytics:
    """
    Engagement report for one account.

    Example:
        report = await AccountAnalytics(db, settings.analytics).compute_account_report(account_id)
    """

    def __init__(self, db: AsyncSession, settings: Optional[AnalyticsSettings] = None):
        self.db = db
        self.settings = settings or AnalyticsSettings()

    async def _newest_events(self, model, account_id: str, as_of: datetime) -> list:
        try:
            result = await self.db.execute(
                select(model)
                .where(model.account_id == account_id, model.timestamp <= as_of)
                .order_by(model.timestamp.desc(), model.id.desc())
                .limit(self.settings.account_event_scan_limit)
            )
            return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch events",
                table=model.__tablename__,
                account_id=account_id,
                error=str(e),
            )
            return []

    async def compute_account_report(self, account_id: str, as_of: Optional[datetime] = None) -> AccountReport:
        """
        Raises:
            NotFoundError: Account does not exist
        """
        as_of = as_of or utcnow()

        account = await self.db.get(Account, account_id, populate_existing=True)
        if account is None:
            raise NotFoundError("User not found", {"account_id": account_id})

        profile = ProfileInfo(
            full_name=account.full_name or "",
            display_name=account.display_name or "",
            profile_picture=account.profile_picture,
            designation=account.designation,
            company_name=account.company_name,
            url_slug=account.url_slug,
            public_url=account.public_url,
        )
        total_views = account.total_views or 0
        total_saves = account.total_contact_saves or 0
        last_viewed_at = account.last_viewed_at
        last_saved_at = account.last_contact_saved_at

        view_events = await self._newest_events(ViewEvent, account_id, as_of)
        save_events = await self._newest_events(ContactSaveEvent, account_id, as_of)
        views = [event.timestamp for event in view_events]
        saves = [event.timestamp for event in save_events]

        last_7 = days_before(as_of, 7)
        last_14 = days_before(as_of, 14)
        last_30 = days_before(as_of, 30)

        views_7 = _count_between(views, last_7)
        saves_7 = _count_between(saves, last_7)
        trends = EngagementTrends(
            views_last_7_days=views_7,
            views_last_30_days=_count_between(views, last_30),
            saves_last_7_days=saves_7,
            saves_last_30_days=_count_between(saves, last_30),
            views_change_percent=change_percent(views_7, _count_between(views, last_14, last_7)),
            saves_change_percent=change_percent(saves_7, _count_between(saves, last_14, last_7)),
        )

        activity = [
            ActivityEntry(type="view", timestamp=event.timestamp, metadata=event.event_metadata)
            for event in view_events[:ACTIVITY_PER_TYPE]
        ] + [
            ActivityEntry(type="save", timestamp=event.timestamp, metadata=event.event_metadata)
            for event in save_events[:ACTIVITY_PER_TYPE]
        ]
        activity.sort(key=lambda entry: entry.timestamp, reverse=True)

        return AccountReport(
            account_id=account_id,
            profile_info=profile,
            statistics=EngagementStatistics(
                total_views=total_views,
                total_contact_saves=total_saves,
                conversion_rate=conversion_rate(total_views, total_saves),
                last_viewed_at=last_viewed_at or (views[0] if views else None),
                last_contact_saved_at=last_saved_at or (saves[0] if saves else None),
            ),
            trends=trends,
            recent_activity=activity[:ACTIVITY_LIMIT],
            chart_data=ChartData(
                daily=daily_series(views, saves, as_of),
                weekly=weekly_series(views, saves, as_of),
                monthly=monthly_series(views, saves, as_of),
            ),
            generated_at=utcnow(),
        )
