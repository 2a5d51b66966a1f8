"""
Redis Channel Naming.
"""

from __future__ import annotations

from shared.config.settings import settings


def _validate_positive_id(id_value: int, name: str) -> None:
    if not isinstance(id_value, int) or id_value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {id_value}")


def channel_tenant_sessions(tenant_id: int) -> str:
    """Channel for all session/order changes within a restaurant."""
    _validate_positive_id(tenant_id, "tenant_id")
    return f"{settings.events_channel_prefix}:{tenant_id}"


def channel_table_session(session_id: int) -> str:
    """Channel for customer devices attached to one table session."""
    _validate_positive_id(session_id, "session_id")
    return f"{settings.events_channel_prefix}:session:{session_id}"
