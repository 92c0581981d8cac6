"""
API Routes Module
"""
from .health import router as health_router
from .slugs import router as slugs_router
from .identity import router as identity_router
from .events import router as events_router
from .analytics import router as analytics_router
from .accounts import router as accounts_router

__all__ = [
    "health_router",
    "slugs_router",
    "identity_router",
    "events_router",
    "analytics_router",
    "accounts_router",
]
