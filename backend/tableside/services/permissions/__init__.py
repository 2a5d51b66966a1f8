"""
Authorization policy.

Usage:
    from tableside.services.permissions import PolicyEngine, Actor, Resource

    engine = PolicyEngine()
    engine.authorize(actor, Actions.CLOSE_SESSION, Resource.of("sessions", session))
"""

from .context import Actor, Resource, Decision
from .engine import PolicyEngine
from .strategies import (
    RoleStrategy,
    OwnerStrategy,
    AdminStrategy,
    WaiterStrategy,
    SelfServiceStrategy,
    STRATEGY_REGISTRY,
    get_strategy_for_role,
)

__all__ = [
    "Actor",
    "Resource",
    "Decision",
    "PolicyEngine",
    "RoleStrategy",
    "OwnerStrategy",
    "AdminStrategy",
    "WaiterStrategy",
    "SelfServiceStrategy",
    "STRATEGY_REGISTRY",
    "get_strategy_for_role",
]
