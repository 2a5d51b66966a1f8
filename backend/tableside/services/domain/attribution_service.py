"""
Order Attribution Ledger.

Links orders to a session and one of its customers, and keeps the derived
totals (order.total_cents, table_session.total_cents) in step with the
rows they are derived from. Totals are always recomputed from scratch,
never incremented, so repeated or concurrent recomputes converge.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import and_, exists, func, select, update

from shared.config.constants import Actions, EventType, OrderStatus, SessionStatus
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit, translate_timeouts
from shared.infrastructure.events import Event, EventSink
from shared.utils.exceptions import (
    InvalidStateError,
    NotAccessibleError,
    SessionNotFoundError,
    ValidationError,
)
from tableside.models import AuditMixin, Order, OrderItem, TableSession
from tableside.services.base_service import BaseDomainService
from tableside.services.domain.session_service import SessionManager
from tableside.services.permissions import Actor

logger = get_logger(__name__)


@dataclass
class SessionSummary:
    """
    Per-customer breakdown of a session's billable orders.
    Orders with no customer are grouped under None.
    """

    session_id: int
    per_customer_totals: dict[int | None, int] = field(default_factory=dict)
    order_count: int = 0
    grand_total_cents: int = 0


def live_items_total(order_id: int):
    return (
        select(func.coalesce(func.sum(OrderItem.quantity * OrderItem.price_at_time_cents), 0))
        .where(OrderItem.order_id == order_id, OrderItem.deleted_at.is_(None))
        .scalar_subquery()
    )


class OrderAttributionLedger(BaseDomainService):
    """
    Usage:
        ledger = OrderAttributionLedger(sessions, events=sink)
        ledger.attribute(order_id=9, session_id=4, customer_id=2, actor=waiter)
        ledger.summarize(4, waiter).per_customer_totals  # {2: 15000, None: 10000}
    """

    def __init__(self, sessions: SessionManager, events: EventSink | None = None):
        super().__init__(sessions.db, sessions.store, events)
        self.sessions = sessions
        self.store.subscribe(self._on_tombstone_change)

    # =========================================================================
    # Attribution
    # =========================================================================

    def attribute(
        self,
        order_id: int,
        session_id: int,
        customer_id: int | None,
        actor: Actor,
    ) -> Order:
        """
        Attach an order to an active session, optionally to one of its customers.

        Moving an order from another session recomputes both totals.

        Raises:
            NotAccessibleError: order missing, tombstoned or another tenant's
            ValidationError: customer does not belong to the session
            InvalidStateError: session is not active
        """
        self.gate(actor, Actions.ATTRIBUTE_ORDER)
        order = self._load_order(order_id)
        session = self.store.get("sessions", session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        self.store.authorize_entity(actor, Actions.ATTRIBUTE_ORDER, "orders", order)
        self.store.authorize_entity(actor, Actions.ATTRIBUTE_ORDER, "sessions", session)

        if customer_id is not None:
            customer = self.store.get("session_customers", customer_id)
            if customer is None or customer.session_id != session_id:
                raise ValidationError(
                    "Customer does not belong to this session",
                    field="customer_id",
                    session_id=session_id,
                    customer_id=customer_id,
                )

        if session.status != SessionStatus.ACTIVE:
            raise InvalidStateError(
                "Session",
                current_state=session.status,
                expected_states=[SessionStatus.ACTIVE],
                session_id=session_id,
            )

        previous_session_id = order.session_id

        with translate_timeouts(self.db, "attribute order"):
            # Guarded on the session still being active at write time
            session_still_active = exists().where(and_(
                TableSession.id == session_id,
                TableSession.status == SessionStatus.ACTIVE,
                TableSession.deleted_at.is_(None),
            ))
            result = self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.deleted_at.is_(None), session_still_active)
                .values(
                    session_id=session_id,
                    customer_id=customer_id,
                    table_id=session.table_id,
                    updated_by_id=actor.identity_id,
                )
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise InvalidStateError("Session", detail="Session changed state concurrently",
                                        session_id=session_id)

            self.recompute_order_total(order_id, commit=False)
            touched = {session_id}
            self.sessions.recompute_total(session_id, commit=False)
            if previous_session_id is not None and previous_session_id != session_id:
                self.sessions.recompute_total(previous_session_id, commit=False)
                touched.add(previous_session_id)
            safe_commit(self.db)

        self.db.refresh(order)
        logger.info(
            "Order attributed",
            order_id=order_id,
            session_id=session_id,
            customer_id=customer_id,
            previous_session_id=previous_session_id,
        )
        self.publish(Event(
            type=EventType.ORDER_ATTRIBUTED,
            tenant_id=order.tenant_id,
            table_id=order.table_id,
            session_id=session_id,
            entity={"order_id": order_id, "customer_id": customer_id},
            actor=actor.to_dict(),
        ))
        self._publish_totals(touched, actor)
        return order

    def detach(self, order_id: int, actor: Actor) -> Order:
        """Clear an order's session/customer linkage. Detaching twice is a no-op."""
        self.gate(actor, Actions.DETACH_ORDER)
        order = self._load_order(order_id)
        self.store.authorize_entity(actor, Actions.DETACH_ORDER, "orders", order)

        previous_session_id = order.session_id
        if previous_session_id is None:
            return order

        with translate_timeouts(self.db, "detach order"):
            self.db.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(session_id=None, customer_id=None, updated_by_id=actor.identity_id)
                .execution_options(synchronize_session="fetch")
            )
            self.sessions.recompute_total(previous_session_id, commit=False)
            safe_commit(self.db)

        self.db.refresh(order)
        logger.info("Order detached", order_id=order_id, previous_session_id=previous_session_id)
        self.publish(Event(
            type=EventType.ORDER_DETACHED,
            tenant_id=order.tenant_id,
            table_id=order.table_id,
            session_id=previous_session_id,
            entity={"order_id": order_id},
            actor=actor.to_dict(),
        ))
        self._publish_totals({previous_session_id}, actor)
        return order

    # =========================================================================
    # Totals
    # =========================================================================

    def recompute_order_total(self, order_id: int, commit: bool = True) -> int:
        """Set order.total_cents to the sum of its live items."""
        with translate_timeouts(self.db, "recompute order total"):
            self.db.execute(
                update(Order)
                .where(Order.id == order_id)
                .values(total_cents=live_items_total(order_id))
                .execution_options(synchronize_session="fetch")
            )
            if commit:
                safe_commit(self.db)
        return self.db.scalar(select(Order.total_cents).where(Order.id == order_id)) or 0

    def summarize(self, session_id: int, actor: Actor) -> SessionSummary:
        """
        Read-only breakdown of live, non-cancelled orders by customer.
        grand_total_cents is the stored session total.
        """
        session = self.store.get("sessions", session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        self.store.authorize_entity(actor, Actions.READ_SUMMARY, "sessions", session)

        rows = self.db.execute(
            select(Order.customer_id, func.count(Order.id), func.coalesce(func.sum(Order.total_cents), 0))
            .where(
                Order.session_id == session_id,
                Order.deleted_at.is_(None),
                Order.status != OrderStatus.CANCELLED,
            )
            .group_by(Order.customer_id)
        ).all()

        summary = SessionSummary(session_id=session_id, grand_total_cents=session.total_cents)
        for customer_id, count, total in rows:
            summary.per_customer_totals[customer_id] = int(total)
            summary.order_count += int(count)
        return summary

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_order(self, order_id: int) -> Order:
        order = self.store.get("orders", order_id)
        if order is None:
            raise NotAccessibleError("orders", order_id)
        return order

    def _on_tombstone_change(self, entity: str, row: AuditMixin) -> None:
        """Keep totals in step when orders or their items are deleted or restored."""
        if entity == "order_items":
            self.recompute_order_total(row.order_id, commit=False)
            session_id = self.db.scalar(select(Order.session_id).where(Order.id == row.order_id))
        elif entity == "orders":
            session_id = row.session_id
        else:
            return
        if session_id is not None:
            self.sessions.recompute_total(session_id, commit=False)

    def _publish_totals(self, session_ids: set[int], actor: Actor) -> None:
        for session_id in session_ids:
            session = self.store.get("sessions", session_id, include_deleted=True)
            if session is None:
                continue
            self.publish(Event(
                type=EventType.SESSION_TOTAL_CHANGED,
                tenant_id=session.tenant_id,
                table_id=session.table_id,
                session_id=session.id,
                entity={"total_cents": session.total_cents},
                actor=actor.to_dict(),
            ))
