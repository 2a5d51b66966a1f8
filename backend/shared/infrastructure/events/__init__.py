"""
Change notifications via Redis pub/sub.

- event_schema.py: Event dataclass with validation
- channels.py: Channel naming functions
- redis_pool.py: Sync connection pool management
- publisher.py: EventSink protocol and the Redis publisher
"""

from .event_schema import Event
from .channels import channel_tenant_sessions, channel_table_session
from .redis_pool import get_redis_sync_client, close_redis_sync_pool
from .publisher import EventSink, RedisEventPublisher, get_event_sink

__all__ = [
    "Event",
    "channel_tenant_sessions",
    "channel_table_session",
    "get_redis_sync_client",
    "close_redis_sync_pool",
    "EventSink",
    "RedisEventPublisher",
    "get_event_sink",
]
