"""
FastAPI dependencies: the identity boundary and per-request service wiring.

Usage:
    @router.put("/api/sessions/{session_id}/close")
    def close(session_id: int, actor: Actor = Depends(get_actor),
              services: Services = Depends(get_services)):
        return services.sessions.close(session_id, actor)
"""

from dataclasses import dataclass
from typing import Any

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.infrastructure.events import EventSink, get_event_sink
from shared.security.auth import optional_token_claims
from tableside.services import (
    JoinHandler,
    OrderAttributionLedger,
    OrderService,
    OtpIssuer,
    PolicyEngine,
    SessionManager,
    SoftDeleteStore,
)
from tableside.services.permissions import Actor

# Stateless; shared by every request
_policy = PolicyEngine()


def get_policy() -> PolicyEngine:
    return _policy


def get_otp_issuer() -> OtpIssuer:
    return OtpIssuer()


def get_actor(claims: dict[str, Any] | None = Depends(optional_token_claims)) -> Actor:
    """
    Verified token -> Actor. No token -> the synthetic public actor with no
    tenant, which the policy denies for anything tenant-scoped.
    """
    if claims is None:
        return Actor.public()
    return Actor.from_claims(claims)


def get_client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


@dataclass
class Services:
    """Domain services for one request, sharing one db session and one store."""

    store: SoftDeleteStore
    sessions: SessionManager
    joins: JoinHandler
    ledger: OrderAttributionLedger
    orders: OrderService


def build_services(
    db: Session,
    events: EventSink | None = None,
    policy: PolicyEngine | None = None,
    otp: OtpIssuer | None = None,
) -> Services:
    """
    Wire the services around a single store, so tombstone changes made
    through it keep session totals in step.
    """
    store = SoftDeleteStore(db, policy or _policy, events=events)
    sessions = SessionManager(db, store, otp or OtpIssuer(), events=events)
    ledger = OrderAttributionLedger(sessions, events=events)
    return Services(
        store=store,
        sessions=sessions,
        joins=JoinHandler(sessions, events=events),
        ledger=ledger,
        orders=OrderService(ledger, events=events),
    )


def get_services(
    db: Session = Depends(get_db),
    events: EventSink = Depends(get_event_sink),
    policy: PolicyEngine = Depends(get_policy),
    otp: OtpIssuer = Depends(get_otp_issuer),
) -> Services:
    return build_services(db, events=events, policy=policy, otp=otp)
