"""
Role strategies for the policy engine.

Each strategy answers for one role once the engine's tenant and tombstone
rules have passed. Strategies are pure: no I/O, no state.
"""

from abc import ABC, abstractmethod

from shared.config.constants import (
    Actions,
    OWNER_SCOPED_ACTIONS,
    Roles,
    SELF_SERVICE_ACTIONS,
    SESSION_SCOPED_ACTIONS,
    WAITER_ACTIONS,
)

from .context import Actor, Decision, Resource, allow, deny


class RoleStrategy(ABC):
    """Abstract base for per-role decisions."""

    @property
    @abstractmethod
    def role_name(self) -> str:
        """Return the role this strategy handles."""
        ...

    @abstractmethod
    def decide(self, actor: Actor, action: str, resource: Resource) -> Decision:
        ...


class OwnerStrategy(RoleStrategy):
    """Owner may do everything inside its restaurant, purge included."""

    @property
    def role_name(self) -> str:
        return Roles.OWNER

    def decide(self, actor: Actor, action: str, resource: Resource) -> Decision:
        return allow("owner within tenant")


class AdminStrategy(RoleStrategy):
    """Admin has full staff access except irreversible purge."""

    @property
    def role_name(self) -> str:
        return Roles.ADMIN

    def decide(self, actor: Actor, action: str, resource: Resource) -> Decision:
        if action.startswith(Actions.PURGE_PREFIX):
            return deny("purge is restricted to owner")
        return allow("admin within tenant")


class WaiterStrategy(RoleStrategy):
    """
    Waiter has operational access:
    - Can open, close and clear sessions, regenerate OTPs
    - Can attribute/detach orders and move order status
    - Cannot touch menu, categories, users, or tombstones
    """

    @property
    def role_name(self) -> str:
        return Roles.WAITER

    def decide(self, actor: Actor, action: str, resource: Resource) -> Decision:
        if action in WAITER_ACTIONS:
            return allow("waiter operational action")
        return deny(f"waiter may not perform {action}")


class SelfServiceStrategy(RoleStrategy):
    """
    Customers and anonymous callers act only on their own behalf.

    Order read/update/delete require the order to have been placed by this
    actor: same id and same role. A customer's session reads and orders
    are confined to the session their token was issued for.
    """

    def __init__(self, role: str = Roles.CUSTOMER):
        self._role = role

    @property
    def role_name(self) -> str:
        return self._role

    def decide(self, actor: Actor, action: str, resource: Resource) -> Decision:
        if action not in SELF_SERVICE_ACTIONS:
            return deny(f"{actor.role} may not perform {action}")
        if action in OWNER_SCOPED_ACTIONS:
            if (
                actor.identity_id is None
                or resource.owner_id != actor.identity_id
                or resource.owner_role != actor.role
            ):
                return deny("resource not owned by actor")
        if action in SESSION_SCOPED_ACTIONS and actor.role == Roles.CUSTOMER:
            if actor.session_id is None:
                return deny("customer token carries no session")
            # Tenant-wide resources carry no session; the session check follows
            if resource.session_id is not None and resource.session_id != actor.session_id:
                return deny("resource outside actor's session")
        return allow("self-service action")


# Strategy registry
STRATEGY_REGISTRY: dict[str, RoleStrategy] = {
    Roles.OWNER: OwnerStrategy(),
    Roles.ADMIN: AdminStrategy(),
    Roles.WAITER: WaiterStrategy(),
    Roles.CUSTOMER: SelfServiceStrategy(Roles.CUSTOMER),
    Roles.PUBLIC: SelfServiceStrategy(Roles.PUBLIC),
}


def get_strategy_for_role(role: str) -> RoleStrategy | None:
    """Get the strategy for a role, or None for unknown roles."""
    return STRATEGY_REGISTRY.get(role)
