"""
Infrastructure module: Database and Redis/events.

Provides:
- Database sessions and transactions (db.py)
- Change notifications over Redis pub/sub (events/)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    safe_commit,
    translate_timeouts,
)
from shared.infrastructure.events import (
    Event,
    EventSink,
    get_event_sink,
    close_redis_sync_pool,
)

__all__ = [
    # db
    "engine",
    "SessionLocal",
    "get_db",
    "safe_commit",
    "translate_timeouts",
    # events (Redis)
    "Event",
    "EventSink",
    "get_event_sink",
    "close_redis_sync_pool",
]
