"""
Inputs and outputs of a policy decision: Actor, Resource, Decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from shared.config.constants import Roles


@dataclass(frozen=True)
class Actor:
    """
    Who is asking. Supplied by the identity boundary; never persisted.

    Usage:
        actor = Actor(role=Roles.WAITER, tenant_id=1, identity_id=42)
        anon = Actor.public(tenant_id=session.tenant_id)
    """

    role: str
    tenant_id: int | None
    identity_id: int | None = None
    # Session a customer token was issued for; None for staff
    session_id: int | None = None

    @classmethod
    def public(cls, tenant_id: int | None = None) -> "Actor":
        """Unauthenticated caller, optionally scoped to the tenant it reached."""
        return cls(role=Roles.PUBLIC, tenant_id=tenant_id, identity_id=None)

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Actor":
        """Build from verified JWT claims (sub, tenant_id, role, optional session_id)."""
        sub = claims.get("sub")
        identity_id = int(sub) if sub is not None and str(sub).isdigit() else None
        session_id = claims.get("session_id")
        return cls(
            role=claims["role"],
            tenant_id=claims["tenant_id"],
            identity_id=identity_id,
            session_id=session_id if isinstance(session_id, int) else None,
        )

    @property
    def is_public(self) -> bool:
        return self.role == Roles.PUBLIC

    def to_dict(self) -> dict[str, Any]:
        data = {"role": self.role, "tenant_id": self.tenant_id, "id": self.identity_id}
        if self.session_id is not None:
            data["session_id"] = self.session_id
        return data


@dataclass(frozen=True)
class Resource:
    """
    What is being acted on, reduced to the fields the policy reads.
    """

    kind: str
    tenant_id: int | None
    resource_id: int | None = None
    owner_id: int | None = None
    owner_role: str | None = None
    session_id: int | None = None
    deleted_at: datetime | None = None

    @property
    def is_tombstoned(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def of(cls, kind: str, entity: Any) -> "Resource":
        """
        Describe a model instance.

        owner_id/owner_role are read from placed_by_id/placed_by_role where
        the model has them. session_id is the row's own id for sessions and
        its session_id column otherwise.
        """
        if kind == "sessions":
            session_id = getattr(entity, "id", None)
        else:
            session_id = getattr(entity, "session_id", None)
        return cls(
            kind=kind,
            tenant_id=getattr(entity, "tenant_id", None),
            resource_id=getattr(entity, "id", None),
            owner_id=getattr(entity, "placed_by_id", None),
            owner_role=getattr(entity, "placed_by_role", None),
            session_id=session_id,
            deleted_at=getattr(entity, "deleted_at", None),
        )

    @classmethod
    def tenant(cls, tenant_id: int) -> "Resource":
        """The restaurant itself, for tenant-wide actions such as listings."""
        return cls(kind="restaurant", tenant_id=tenant_id, resource_id=tenant_id)


@dataclass(frozen=True)
class Decision:
    """Outcome of an evaluation. reason is for the audit log only."""

    allow: bool
    reason: str

    def __bool__(self) -> bool:
        return self.allow


def allow(reason: str) -> Decision:
    return Decision(True, reason)


def deny(reason: str) -> Decision:
    return Decision(False, reason)
