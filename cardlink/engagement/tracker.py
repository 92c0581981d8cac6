"""
Engagement Tracker

Records profile views and contact saves. Each call is one transaction that
bumps the account counters, upserts the aggregates and appends the event, so
the counters always equal the number of committed events.

All counter writes are ``col = col + 1`` expressions evaluated by the
database, which makes concurrent calls for the same account commute.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.database.connection import get_db
from cardlink.database.models import (
    GLOBAL_AGGREGATE_KEY,
    Account,
    ContactSaveEvent,
    DailyViewAggregate,
    GlobalAggregate,
    ViewEvent,
    utcnow,
)
from cardlink.errors import CardlinkError, TrackingError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RequestMeta:
    """Request details captured with each event"""
    user_agent: Optional[str] = None
    referer: Optional[str] = None
    ip: Optional[str] = None


class EngagementTracker:
    """
    Atomic engagement counters.

    Example:
        tracker = EngagementTracker(db)
        await tracker.record_view(account_id, slug="jane-doe-3f9a1c")
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _insert(self, model):
        """Dialect insert supporting ON CONFLICT DO UPDATE"""
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model)
        if dialect == "sqlite":
            return sqlite.insert(model)
        raise TrackingError(f"Upserts are not supported on {dialect}")

    async def _bump_account(self, account_id: str, values: Dict[str, Any]) -> None:
        result = await self.db.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise TrackingError("User not found", {"account_id": account_id})

    async def _bump_global(self, column: str, now: datetime) -> None:
        stmt = self._insert(GlobalAggregate).values(
            key=GLOBAL_AGGREGATE_KEY,
            total_profile_views=1 if column == "total_profile_views" else 0,
            total_contact_saves=1 if column == "total_contact_saves" else 0,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[GlobalAggregate.key],
            set_={
                column: getattr(GlobalAggregate, column) + 1,
                "last_updated": now,
            },
        )
        await self.db.execute(stmt)

    async def _bump_daily(self, account_id: str, now: datetime) -> None:
        stmt = self._insert(DailyViewAggregate).values(
            account_id=account_id,
            day=now.date(),
            view_count=1,
            last_updated=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[DailyViewAggregate.account_id, DailyViewAggregate.day],
            set_={
                "view_count": DailyViewAggregate.view_count + 1,
                "last_updated": now,
            },
        )
        await self.db.execute(stmt)

    async def _commit_batch(self, kind: str, account_id: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Tracking batch commit failed", kind=kind, account_id=account_id, error=str(e))
            raise TrackingError(f"Failed to track {kind}") from e

    async def record_view(
        self,
        account_id: str,
        slug: Optional[str] = None,
        request_meta: Optional[RequestMeta] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> datetime:
        """
        Count one profile view.

        Returns:
            The server timestamp stored on the event

        Raises:
            TrackingError: Account missing or the batch could not be committed
        """
        meta = request_meta or RequestMeta()
        now = utcnow()
        try:
            await self._bump_account(account_id, {
                "total_views": Account.total_views + 1,
                "last_viewed_at": now,
            })
            await self._bump_global("total_profile_views", now)
            await self._bump_daily(account_id, now)
            self.db.add(ViewEvent(
                account_id=account_id,
                slug=slug,
                timestamp=now,
                user_agent=meta.user_agent,
                referer=meta.referer,
                ip=meta.ip,
                event_metadata=metadata,
            ))
        except TrackingError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Tracking batch failed", kind="view", account_id=account_id, error=str(e))
            raise TrackingError("Failed to track page view") from e

        await self._commit_batch("page view", account_id)
        logger.debug("Page view tracked", account_id=account_id, slug=slug)
        return now

    async def record_contact_save(
        self,
        account_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        request_meta: Optional[RequestMeta] = None,
    ) -> datetime:
        """
        Count one contact save. No daily bucket is kept for saves.

        Raises:
            TrackingError: Account missing or the batch could not be committed
        """
        meta = request_meta or RequestMeta()
        now = utcnow()
        try:
            await self._bump_account(account_id, {
                "total_contact_saves": Account.total_contact_saves + 1,
                "last_contact_saved_at": now,
            })
            await self._bump_global("total_contact_saves", now)
            self.db.add(ContactSaveEvent(
                account_id=account_id,
                timestamp=now,
                user_agent=meta.user_agent,
                referer=meta.referer,
                ip=meta.ip,
                event_metadata=metadata,
            ))
        except TrackingError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Tracking batch failed", kind="contact_save", account_id=account_id, error=str(e))
            raise TrackingError("Failed to track contact save") from e

        await self._commit_batch("contact save", account_id)
        logger.debug("Contact save tracked", account_id=account_id)
        return now


async def track_view_best_effort(
    account_id: str,
    slug: Optional[str] = None,
    request_meta: Optional[RequestMeta] = None,
) -> bool:
    """
    Record a view on a fresh session and never raise.

    Runs after the primary response has been produced (FastAPI background
    task); failures are logged and reported through the return value only.
    """
    try:
        async with get_db() as db:
            await EngagementTracker(db).record_view(account_id, slug=slug, request_meta=request_meta)
        return True
    except (CardlinkError, SQLAlchemyError, RuntimeError) as e:
        logger.warning(
            "Error tracking page view",
            account_id=account_id,
            slug=slug,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
