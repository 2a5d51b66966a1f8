"""
Event publishing.

Domain services hand events to an EventSink after their transaction
commits. Publishing is best effort: a failure is logged and never undoes
or fails the state change that produced the event.
"""

from __future__ import annotations

import random
import time
from typing import Protocol

import redis as redis_sync

from shared.config.settings import settings
from shared.config.logging import get_logger
from .channels import channel_tenant_sessions, channel_table_session
from .event_schema import Event
from .redis_pool import get_redis_sync_client

logger = get_logger(__name__)


class EventSink(Protocol):
    """Anything that accepts change notifications."""

    def publish(self, event: Event) -> None:
        ...


def _validate_event_size(event_json: str, event_type: str) -> None:
    size = len(event_json.encode("utf-8"))
    if size > settings.events_max_size_bytes:
        raise ValueError(
            f"Event {event_type} exceeds max size: {size} > {settings.events_max_size_bytes} bytes"
        )


def _retry_delay(attempt: int) -> float:
    """Exponential backoff with jitter."""
    base = settings.redis_publish_retry_delay * (2 ** attempt)
    return base + random.uniform(0, base / 2)


class RedisEventPublisher:
    """
    Publishes events over Redis pub/sub.

    Every event goes to the tenant channel. Events tied to a session are
    also sent to that session's channel for customer devices.
    """

    def __init__(self, client: redis_sync.Redis | None = None):
        self._client = client

    @property
    def client(self) -> redis_sync.Redis:
        if self._client is None:
            self._client = get_redis_sync_client()
        return self._client

    def publish(self, event: Event) -> None:
        try:
            event_json = event.to_json()
            _validate_event_size(event_json, event.type)
        except ValueError as e:
            logger.error("Event dropped", event_type=event.type, error=str(e))
            return

        channels = [channel_tenant_sessions(event.tenant_id)]
        if event.session_id is not None:
            channels.append(channel_table_session(event.session_id))

        for channel in channels:
            self._publish_with_retry(channel, event_json, event.type)

    def _publish_with_retry(self, channel: str, event_json: str, event_type: str) -> None:
        max_retries = settings.redis_publish_max_retries
        for attempt in range(max_retries):
            try:
                self.client.publish(channel, event_json)
                return
            except redis_sync.RedisError as e:
                if attempt < max_retries - 1:
                    delay = _retry_delay(attempt)
                    logger.warning(
                        "Redis publish failed, retrying",
                        channel=channel,
                        event_type=event_type,
                        attempt=attempt + 1,
                        delay_seconds=round(delay, 2),
                        error=str(e),
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        "Redis publish failed after all retries",
                        channel=channel,
                        event_type=event_type,
                        error=str(e),
                    )


_default_sink: EventSink | None = None


def get_event_sink() -> EventSink:
    """FastAPI dependency returning the process-wide Redis publisher."""
    global _default_sink
    if _default_sink is None:
        _default_sink = RedisEventPublisher()
    return _default_sink
