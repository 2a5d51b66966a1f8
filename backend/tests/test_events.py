"""
Tests for change events: schema, channels and the Redis publisher.
"""

from unittest.mock import MagicMock, patch

import pytest
import redis

from shared.config.constants import EventType, SessionStatus
from shared.infrastructure.events import (
    Event,
    RedisEventPublisher,
    channel_table_session,
    channel_tenant_sessions,
)
from tableside.core.dependencies import build_services


class TestEventSchema:
    def test_json_round_trip(self):
        event = Event(type=EventType.SESSION_OPENED, tenant_id=1, table_id=2, session_id=3,
                      entity={"otp_expires_at": "2024-06-01T12:00:00+00:00"})
        again = Event.from_json(event.to_json())
        assert again == event

    def test_timestamp_filled(self):
        assert Event(type=EventType.SESSION_CLOSED, tenant_id=1).ts is not None

    @pytest.mark.parametrize("kwargs", [
        {"type": "", "tenant_id": 1},
        {"type": "X", "tenant_id": 0},
        {"type": "X", "tenant_id": 1, "session_id": -4},
        {"type": "X", "tenant_id": 1, "entity": ["not", "a", "dict"]},
    ])
    def test_invalid_event_rejected(self, kwargs):
        with pytest.raises(ValueError):
            Event(**kwargs)


class TestChannels:
    def test_channel_names(self):
        assert channel_tenant_sessions(7) == "sessions:7"
        assert channel_table_session(12) == "sessions:session:12"

    def test_non_positive_id_rejected(self):
        with pytest.raises(ValueError):
            channel_tenant_sessions(0)


class TestRedisEventPublisher:
    def test_session_event_goes_to_both_channels(self):
        client = MagicMock()
        RedisEventPublisher(client).publish(Event(type=EventType.CUSTOMER_JOINED, tenant_id=1, session_id=5))

        channels = [call.args[0] for call in client.publish.call_args_list]
        assert channels == ["sessions:1", "sessions:session:5"]

    def test_tenant_event_goes_to_tenant_channel_only(self):
        client = MagicMock()
        RedisEventPublisher(client).publish(Event(type=EventType.ENTITY_DELETED, tenant_id=1))
        assert client.publish.call_count == 1

    @patch("shared.infrastructure.events.publisher.time.sleep")
    def test_retries_then_gives_up_without_raising(self, sleep):
        client = MagicMock()
        client.publish.side_effect = redis.ConnectionError("down")

        RedisEventPublisher(client).publish(Event(type=EventType.SESSION_CLOSED, tenant_id=1))

        assert client.publish.call_count == 3
        assert sleep.call_count == 2

    @patch("shared.infrastructure.events.publisher.settings")
    def test_oversized_event_dropped(self, settings):
        settings.events_max_size_bytes = 10
        client = MagicMock()
        RedisEventPublisher(client).publish(Event(type=EventType.SESSION_CLOSED, tenant_id=1))
        client.publish.assert_not_called()


class ExplodingSink:
    def publish(self, event):
        raise RuntimeError("sink is down")


def test_sink_failure_never_fails_the_state_change(db_session, seed_table, waiter, otp_issuer):
    services = build_services(db_session, events=ExplodingSink(), otp=otp_issuer)

    session = services.sessions.open(seed_table.id, seed_table.tenant_id, waiter)
    closed = services.sessions.close(session.id, waiter)

    assert closed.status == SessionStatus.BILLED
