"""
Account Directory

Account creation for seeding and cursor-paginated account listing with
case-insensitive substring filters.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.database.models import Account, new_id, utcnow
from cardlink.errors import ValidationError

logger = structlog.get_logger(__name__)

MAX_PAGE_SIZE = 100
SEARCHABLE_FIELDS = (
    Account.full_name,
    Account.display_name,
    Account.email_address,
    Account.company_name,
    Account.designation,
)


@dataclass
class AccountPage:
    """One page of accounts, newest first"""
    items: List[Account] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


class AccountDirectory:
    """Account rows as seen by listing screens and seed scripts"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_account(self, **fields) -> Account:
        """Insert an account. ``id`` and timestamps are generated when absent."""
        now = utcnow()
        fields.setdefault("id", new_id())
        fields.setdefault("created_at", now)
        fields.setdefault("updated_at", fields["created_at"])

        account = Account(**fields)
        self.db.add(account)
        await self.db.commit()
        logger.info("Account created", account_id=account.id)
        return account

    async def list_accounts(
        self,
        limit: int = 50,
        cursor: Optional[str] = None,
        search: Optional[str] = None,
        company: Optional[str] = None,
    ) -> AccountPage:
        """
        List accounts ordered by creation time, newest first.

        Args:
            limit: Page size, 1..100
            cursor: Id of the last account on the previous page
            search: Substring matched against name, email, company and designation
            company: Substring matched against company name
        """
        if limit < 1 or limit > MAX_PAGE_SIZE:
            raise ValidationError(f"Limit must be between 1 and {MAX_PAGE_SIZE}")

        query = select(Account)
        conditions = []

        if cursor:
            anchor = await self.db.get(Account, cursor)
            if anchor is not None:
                conditions.append(or_(
                    Account.created_at < anchor.created_at,
                    and_(Account.created_at == anchor.created_at, Account.id < anchor.id),
                ))
            else:
                logger.debug("Unknown cursor, returning first page", cursor=cursor)

        if search:
            term = search.strip().lower()
            conditions.append(or_(*[
                column.ilike(f"%{_escape_like(term)}%", escape="\\")
                for column in SEARCHABLE_FIELDS
            ]))

        if company:
            term = company.strip().lower()
            conditions.append(Account.company_name.ilike(f"%{_escape_like(term)}%", escape="\\"))

        if conditions:
            query = query.where(and_(*conditions))

        query = (
            query.order_by(Account.created_at.desc(), Account.id.desc())
            .limit(limit + 1)
            .execution_options(populate_existing=True)
        )
        rows = list((await self.db.execute(query)).scalars().all())

        has_more = len(rows) > limit
        items = rows[:limit]
        return AccountPage(
            items=items,
            has_more=has_more,
            next_cursor=items[-1].id if has_more else None,
        )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
