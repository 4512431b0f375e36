"""
Dense integer ordering ("weights") for SQLAlchemy models.

Exposes the weight manager, its configuration and the record store it
operates through.
"""

from .config import WeightConfig, refresh_settings_cache
from .db.store import RecordStore, SessionRecordStore
from .manager import WeightManager

__all__ = [
    "WeightConfig",
    "refresh_settings_cache",
    "RecordStore",
    "SessionRecordStore",
    "WeightManager",
]
