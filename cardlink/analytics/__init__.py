"""
Analytics Module
"""
from .report import AnalyticsEngine
from .account_report import AccountAnalytics
from .models import AnalyticsReport, AccountReport

__all__ = [
    "AnalyticsEngine",
    "AccountAnalytics",
    "AnalyticsReport",
    "AccountReport",
]
