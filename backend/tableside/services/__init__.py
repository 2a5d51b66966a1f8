"""
Services module for business logic.

Structure:
    Router (thin controller)
        ↓
    Domain service (SessionManager, JoinHandler, OrderAttributionLedger, OrderService)
        ↓
    SoftDeleteStore (tombstones, single authorization chokepoint)
        ↓
    PolicyEngine

Usage:
    from tableside.services import PolicyEngine, SoftDeleteStore, SessionManager, OtpIssuer

    store = SoftDeleteStore(db, PolicyEngine())
    sessions = SessionManager(db, store, OtpIssuer())
"""

from .otp import OtpIssuer
from .permissions import Actor, Resource, Decision, PolicyEngine
from .crud import SoftDeleteStore, ENTITY_REGISTRY, get_model_class
from .domain import (
    SessionManager,
    SessionDetails,
    JoinHandler,
    OrderAttributionLedger,
    SessionSummary,
    OrderService,
    OrderLine,
)

__all__ = [
    "OtpIssuer",
    "Actor",
    "Resource",
    "Decision",
    "PolicyEngine",
    "SoftDeleteStore",
    "ENTITY_REGISTRY",
    "get_model_class",
    "SessionManager",
    "SessionDetails",
    "JoinHandler",
    "OrderAttributionLedger",
    "SessionSummary",
    "OrderService",
    "OrderLine",
]
