"""
Policy Engine - the single authorization chokepoint.

Rules, first match wins:
1. Tombstoned resource: deny everything except restore_*/purge_*.
2. Actor tenant differs from resource tenant: deny. No override.
3. Self-service actions by customer/public actors: allow, owner-checked
   (id and role) for order read/update/delete, and confined to the
   customer's own session for session reads and ordering.
4. owner: allow all. admin: allow all but purge_*.
5. waiter: allow operational session/order actions only.
6. Otherwise deny.

Usage:
    engine = PolicyEngine()
    decision = engine.evaluate(actor, Actions.CLOSE_SESSION, Resource.of("sessions", s))
    engine.authorize(actor, Actions.CLOSE_SESSION, Resource.of("sessions", s))  # raises
"""

from shared.config.constants import Actions
from shared.config.logging import audit_policy_decision, get_logger
from shared.utils.exceptions import AuthorizationError

from .context import Actor, Decision, Resource, deny
from .strategies import get_strategy_for_role

logger = get_logger(__name__)

_TOMBSTONE_ACTION_PREFIXES = (Actions.RESTORE_PREFIX, Actions.PURGE_PREFIX)


class PolicyEngine:
    """Stateless; one instance can be shared by every request."""

    def evaluate(self, actor: Actor, action: str, resource: Resource) -> Decision:
        """
        Decide allow/deny. Never raises: an unexpected error denies.
        """
        try:
            return self._evaluate(actor, action, resource)
        except Exception as e:
            logger.error(
                "Policy evaluation failed, denying",
                action=action,
                resource_kind=getattr(resource, "kind", None),
                error=str(e),
                exc_info=True,
            )
            return deny("evaluation error")

    def _evaluate(self, actor: Actor, action: str, resource: Resource) -> Decision:
        if resource.is_tombstoned and not action.startswith(_TOMBSTONE_ACTION_PREFIXES):
            return deny("resource is tombstoned")

        if actor.tenant_id is None or actor.tenant_id != resource.tenant_id:
            return deny("tenant mismatch")

        strategy = get_strategy_for_role(actor.role)
        if strategy is None:
            return deny(f"unknown role {actor.role!r}")
        return strategy.decide(actor, action, resource)

    def authorize(self, actor: Actor, action: str, resource: Resource) -> Decision:
        """
        Evaluate and raise AuthorizationError on deny.

        The reason goes to the security audit log; the client only ever sees
        the generic not-accessible response.
        """
        decision = self.evaluate(actor, action, resource)
        if not decision.allow:
            audit_policy_decision(
                action=action,
                allowed=False,
                reason=decision.reason,
                actor_id=actor.identity_id,
                actor_role=actor.role,
                tenant_id=actor.tenant_id,
                resource_kind=resource.kind,
                resource_id=resource.resource_id,
            )
            raise AuthorizationError(action, resource_kind=resource.kind)

        logger.debug(
            "Policy allowed",
            action=action,
            actor_role=actor.role,
            resource_kind=resource.kind,
            resource_id=resource.resource_id,
        )
        return decision
