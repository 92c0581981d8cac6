"""
Engagement Tracking Module
"""
from .tracker import EngagementTracker, RequestMeta, track_view_best_effort

__all__ = [
    "EngagementTracker",
    "RequestMeta",
    "track_view_best_effort",
]
