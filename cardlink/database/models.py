"""
Database Models

Tables backing the profile engagement core:

Entities:
- Account: profile owner, carries slug, identity and counter fields
- SlugMapping: slug -> account lookup, deactivated but never deleted
- IdentityMapping: external identity -> account, created exactly once

Event log (append-only):
- ViewEvent: one row per profile view
- ContactSaveEvent: one row per contact save

Aggregates (maintained incrementally):
- DailyViewAggregate: views per account per day
- GlobalAggregate: singleton cross-account totals
"""

from datetime import datetime, date, timezone
from typing import Optional, Dict, Any
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


GLOBAL_AGGREGATE_KEY = "global"


def utcnow() -> datetime:
    """Current time as naive UTC, the representation stored in every table"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENTITIES
# =============================================================================

class Account(Base):
    """
    Account Table

    Root entity of the subsystem. Profile fields are owned by the CRUD
    handlers outside this package; slug fields are written by the slug
    registry, identity fields by the identity linker and counters by the
    engagement tracker.
    """
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)

    # Profile
    full_name: Mapped[Optional[str]] = mapped_column(String(200))
    display_name: Mapped[Optional[str]] = mapped_column(String(200))
    email_address: Mapped[Optional[str]] = mapped_column(String(255))
    primary_contact_number: Mapped[Optional[str]] = mapped_column(String(50))
    phone_number: Mapped[Optional[str]] = mapped_column(String(50))
    designation: Mapped[Optional[str]] = mapped_column(String(200))
    company_name: Mapped[Optional[str]] = mapped_column(String(200))
    profile_picture: Mapped[Optional[str]] = mapped_column(Text)

    # Public URL
    url_slug: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    public_url: Mapped[Optional[str]] = mapped_column(String(1024))

    # External identity (0..1 per account, 1 account per identity)
    google_uid: Mapped[Optional[str]] = mapped_column(String(128), unique=True)
    google_email: Mapped[Optional[str]] = mapped_column(String(255))
    google_display_name: Mapped[Optional[str]] = mapped_column(String(200))
    google_photo_url: Mapped[Optional[str]] = mapped_column(String(1024))
    is_google_linked: Mapped[bool] = mapped_column(Boolean, default=False)
    registered_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Engagement counters
    total_views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_contact_saves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    last_viewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_contact_saved_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_accounts_created_at", "created_at", "id"),
    )

    @property
    def name_for_display(self) -> str:
        return self.full_name or self.display_name or "Unknown User"

    def public_profile(self) -> Dict[str, Any]:
        """Fields safe to return to anonymous card visitors"""
        return {
            "id": self.id,
            "full_name": self.full_name or "",
            "display_name": self.display_name or "",
            "email_address": self.email_address or "",
            "primary_contact_number": self.primary_contact_number or "",
            "designation": self.designation,
            "company_name": self.company_name,
            "profile_picture": self.profile_picture,
            "public_url": self.public_url,
            "url_slug": self.url_slug,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


class SlugMapping(Base):
    """
    Slug Mapping Table

    Keyed by slug; at most one row per slug. Superseded slugs are
    deactivated, never deleted.
    """
    __tablename__ = "slug_mappings"

    slug: Mapped[str] = mapped_column(String(255), primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class IdentityMapping(Base):
    """
    Identity Mapping Table

    Keyed by the external identity id. The primary key makes creation a
    create-if-absent write; rows are immutable afterwards.
    """
    __tablename__ = "identity_mappings"

    external_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    account_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    email: Mapped[Optional[str]] = mapped_column(String(255))
    url_slug: Mapped[Optional[str]] = mapped_column(String(255))
    linked_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


# =============================================================================
# EVENT LOG
# =============================================================================

class ViewEvent(Base):
    """Profile view event"""
    __tablename__ = "view_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(255))
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    referer: Mapped[Optional[str]] = mapped_column(Text)
    ip: Mapped[Optional[str]] = mapped_column(String(64))
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)

    __table_args__ = (
        Index("ix_view_events_timestamp", "timestamp"),
        Index("ix_view_events_account_timestamp", "account_id", "timestamp"),
    )


class ContactSaveEvent(Base):
    """Contact save (vCard download) event"""
    __tablename__ = "contact_save_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(Text)
    referer: Mapped[Optional[str]] = mapped_column(Text)
    ip: Mapped[Optional[str]] = mapped_column(String(64))
    event_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column("metadata", JSON)

    __table_args__ = (
        Index("ix_contact_save_events_account_timestamp", "account_id", "timestamp"),
    )


# =============================================================================
# AGGREGATES
# =============================================================================

class DailyViewAggregate(Base):
    """Views per account per UTC day"""
    __tablename__ = "daily_view_aggregates"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    day: Mapped[date] = mapped_column(Date, primary_key=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class GlobalAggregate(Base):
    """Cross-account totals, a single row keyed GLOBAL_AGGREGATE_KEY"""
    __tablename__ = "global_aggregates"

    key: Mapped[str] = mapped_column(String(32), primary_key=True, default=GLOBAL_AGGREGATE_KEY)
    total_profile_views: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_contact_saves: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
