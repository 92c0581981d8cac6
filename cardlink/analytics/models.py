"""
Analytics Report Models

Response shapes of the global and per-account reports. Fields serialize
with camelCase keys.
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ReportModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# GLOBAL REPORT
# =============================================================================

class CompanyCount(ReportModel):
    name: str
    count: int


class RegistrationEntry(ReportModel):
    id: str
    full_name: str
    company_name: Optional[str] = None
    created_at: Optional[datetime] = None


class MonthlyRegistrations(ReportModel):
    month: str
    registrations: int


class ViewedCard(ReportModel):
    id: str
    full_name: str
    company_name: Optional[str] = None
    total_views: int
    last_viewed_at: Optional[datetime] = None


class RecentView(ReportModel):
    account_id: str
    full_name: str
    viewed_at: datetime
    slug: Optional[str] = None


class AnalyticsReport(ReportModel):
    """Point-in-time report over all accounts"""
    total_users: int
    active_users: int
    total_profile_views: int
    total_contact_saves: int
    recent_users: int
    previous_period_users: int
    growth_rate: str
    top_companies: List[CompanyCount]
    recent_registrations: List[RegistrationEntry]
    monthly_stats: List[MonthlyRegistrations]
    top_viewed_cards: List[ViewedCard]
    recent_views: List[RecentView]
    generated_at: datetime


# =============================================================================
# ACCOUNT REPORT
# =============================================================================

class ProfileInfo(ReportModel):
    full_name: str
    display_name: str
    profile_picture: Optional[str] = None
    designation: Optional[str] = None
    company_name: Optional[str] = None
    url_slug: Optional[str] = None
    public_url: Optional[str] = None


class EngagementStatistics(ReportModel):
    total_views: int
    total_contact_saves: int
    conversion_rate: str
    last_viewed_at: Optional[datetime] = None
    last_contact_saved_at: Optional[datetime] = None


class EngagementTrends(ReportModel):
    views_last_7_days: int
    views_last_30_days: int
    saves_last_7_days: int
    saves_last_30_days: int
    views_change_percent: str
    saves_change_percent: str


class ActivityEntry(ReportModel):
    type: Literal["view", "save"]
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None


class DailyPoint(ReportModel):
    date: str
    views: int
    saves: int


class WeeklyPoint(ReportModel):
    week: str
    views: int
    saves: int


class MonthlyPoint(ReportModel):
    month: str
    views: int
    saves: int


class ChartData(ReportModel):
    daily: List[DailyPoint]
    weekly: List[WeeklyPoint]
    monthly: List[MonthlyPoint]


class AccountReport(ReportModel):
    """Engagement report for a single account"""
    account_id: str
    profile_info: ProfileInfo
    statistics: EngagementStatistics
    trends: EngagementTrends
    recent_activity: List[ActivityEntry]
    chart_data: ChartData
    generated_at: datetime
