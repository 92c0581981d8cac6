"""
Database Module
"""
from .connection import init_database, close_database, get_db, get_db_dependency
from .models import (
    Base,
    Account,
    SlugMapping,
    IdentityMapping,
    ViewEvent,
    ContactSaveEvent,
    DailyViewAggregate,
    GlobalAggregate,
)

__all__ = [
    "init_database",
    "close_database",
    "get_db",
    "get_db_dependency",
    "Base",
    "Account",
    "SlugMapping",
    "IdentityMapping",
    "ViewEvent",
    "ContactSaveEvent",
    "DailyViewAggregate",
    "GlobalAggregate",
]
