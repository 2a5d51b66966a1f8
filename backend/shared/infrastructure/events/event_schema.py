"""
Event Schema.

Defines the Event dataclass published on every session/order change.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Change notification for a tenant's sessions.

    'entity' carries event-specific data (IDs, totals, statuses).
    'actor' identifies who triggered the change.
    """

    type: str
    tenant_id: int
    table_id: int | None = None
    session_id: int | None = None
    entity: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version

    def __post_init__(self) -> None:
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if not isinstance(self.tenant_id, int) or self.tenant_id <= 0:
            raise ValueError("Event tenant_id must be a positive integer")

        if self.table_id is not None and (not isinstance(self.table_id, int) or self.table_id <= 0):
            raise ValueError("Event table_id must be a positive integer or None")

        if self.session_id is not None and (not isinstance(self.session_id, int) or self.session_id <= 0):
            raise ValueError("Event session_id must be a positive integer or None")

        if self.entity is not None and not isinstance(self.entity, dict):
            raise ValueError("Event entity must be a dict or None")

        if self.actor is not None and not isinstance(self.actor, dict):
            raise ValueError("Event actor must be a dict or None")

        if self.ts is None:
            self.ts = datetime.now(timezone.utc).isoformat()

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        data = asdict(self)
        data["entity"] = data["entity"] or {}
        data["actor"] = data["actor"] or {}
        return json.dumps(data, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        """Deserialize event from JSON string. Validation runs in __post_init__."""
        return cls(**json.loads(json_str))
