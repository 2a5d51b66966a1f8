"""
Order Service.

Places orders with price snapshots, edits their lines while pending and
moves them through the kitchen workflow. Every change that affects money
ends in a recompute through the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select, update

from shared.config.constants import (
    ORDER_TRANSITIONS,
    Actions,
    EventType,
    OrderStatus,
    Roles,
    SessionStatus,
)
from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit, translate_timeouts
from shared.infrastructure.events import Event, EventSink
from shared.utils.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotAccessibleError,
    SessionNotFoundError,
    ValidationError,
)
from shared.utils.validators import validate_price_cents, validate_quantity
from tableside.models import Order, OrderItem
from tableside.services.base_service import BaseDomainService
from tableside.services.domain.attribution_service import OrderAttributionLedger
from tableside.services.permissions import Actor, Resource

logger = get_logger(__name__)


@dataclass(frozen=True)
class OrderLine:
    """One requested line. price_cents is the menu price at the moment of ordering."""

    menu_item_id: int
    quantity: int
    price_cents: int
    item_name: str | None = None

    def validated(self) -> "OrderLine":
        try:
            validate_quantity(self.quantity)
        except ValueError as e:
            raise ValidationError(str(e), field="quantity", menu_item_id=self.menu_item_id) from e
        try:
            validate_price_cents(self.price_cents)
        except ValueError as e:
            raise ValidationError(str(e), field="price_cents", menu_item_id=self.menu_item_id) from e
        return self


class OrderService(BaseDomainService):
    """
    Usage:
        orders = OrderService(ledger, events=sink)
        order = orders.place_order(1, [OrderLine(7, 2, 12500)], waiter, session_id=4)
        orders.update_status(order.id, OrderStatus.PREPARING, waiter)
    """

    def __init__(self, ledger: OrderAttributionLedger, events: EventSink | None = None):
        super().__init__(ledger.db, ledger.store, events)
        self.ledger = ledger
        self.sessions = ledger.sessions

    def place_order(
        self,
        restaurant_id: int,
        lines: list[OrderLine],
        actor: Actor,
        session_id: int | None = None,
        customer_id: int | None = None,
        notes: str | None = None,
    ) -> Order:
        """
        Create a pending order with its lines.

        A customer orders into the session their token was issued for and
        is attributed to themselves unless a customer is given.
        """
        if not lines:
            raise ValidationError("An order needs at least one item", field="items")
        lines = [line.validated() for line in lines]

        self.store.authorize(actor, Actions.CREATE_ORDER, Resource.tenant(restaurant_id))

        if session_id is None and actor.role == Roles.CUSTOMER:
            session_id = actor.session_id

        session = None
        if session_id is not None:
            session = self.store.get("sessions", session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            self.store.authorize_entity(actor, Actions.CREATE_ORDER, "sessions", session)
            if session.status != SessionStatus.ACTIVE:
                raise InvalidStateError(
                    "Session",
                    current_state=session.status,
                    expected_states=[SessionStatus.ACTIVE],
                    session_id=session_id,
                )
            if customer_id is None and actor.role == Roles.CUSTOMER:
                customer_id = actor.identity_id
            if customer_id is not None:
                customer = self.store.get("session_customers", customer_id)
                if customer is None or customer.session_id != session_id:
                    raise ValidationError(
                        "Customer does not belong to this session",
                        field="customer_id",
                        session_id=session_id,
                    )
        elif customer_id is not None:
            raise ValidationError("A customer can only be set together with a session", field="customer_id")

        order = Order(
            tenant_id=restaurant_id,
            session_id=session_id,
            customer_id=customer_id,
            table_id=session.table_id if session is not None else None,
            status=OrderStatus.PENDING,
            total_cents=0,
            placed_by_id=actor.identity_id,
            placed_by_role=actor.role,
            notes=notes,
        )
        order.set_created_by(actor.identity_id)

        with translate_timeouts(self.db, "place order"):
            self.db.add(order)
            self.db.flush()
            for line in lines:
                self.db.add(OrderItem(
                    tenant_id=restaurant_id,
                    order_id=order.id,
                    menu_item_id=line.menu_item_id,
                    item_name=line.item_name,
                    quantity=line.quantity,
                    price_at_time_cents=line.price_cents,
                ))
            self.db.flush()
            self.ledger.recompute_order_total(order.id, commit=False)
            if session_id is not None:
                self.sessions.recompute_total(session_id, commit=False)
            safe_commit(self.db)

        self.db.refresh(order)
        logger.info(
            "Order placed",
            order_id=order.id,
            tenant_id=restaurant_id,
            session_id=session_id,
            total_cents=order.total_cents,
            items=len(lines),
        )
        self.publish(Event(
            type=EventType.ORDER_PLACED,
            tenant_id=restaurant_id,
            table_id=order.table_id,
            session_id=session_id,
            entity={"order_id": order.id, "total_cents": order.total_cents, "customer_id": customer_id},
            actor=actor.to_dict(),
        ))
        return order

    def get_order(self, order_id: int, actor: Actor) -> Order:
        order = self._load_order(order_id)
        self.store.authorize_entity(actor, Actions.READ_ORDER, "orders", order)
        return order

    # =========================================================================
    # Lines (pending orders only)
    # =========================================================================

    def add_item(self, order_id: int, line: OrderLine, actor: Actor) -> OrderItem:
        line = line.validated()
        order = self._load_order(order_id)
        self.store.authorize_entity(actor, Actions.UPDATE_ORDER, "orders", order)
        self._require_pending(order)

        item = OrderItem(
            tenant_id=order.tenant_id,
            order_id=order.id,
            menu_item_id=line.menu_item_id,
            item_name=line.item_name,
            quantity=line.quantity,
            price_at_time_cents=line.price_cents,
        )
        item.set_created_by(actor.identity_id)

        with translate_timeouts(self.db, "add order item"):
            self.db.add(item)
            self.db.flush()
            self._recompute(order)
            safe_commit(self.db)

        self.db.refresh(item)
        logger.info("Order item added", order_id=order_id, item_id=item.id)
        return item

    def remove_item(self, item_id: int, actor: Actor, order_id: int | None = None) -> Order:
        """Tombstone one line; the order total drops by its line total."""
        item = self.store.get("order_items", item_id)
        if item is None or (order_id is not None and item.order_id != order_id):
            raise NotAccessibleError("order_items", item_id)
        order = self._load_order(item.order_id)
        self.store.authorize_entity(actor, Actions.UPDATE_ORDER, "orders", order)
        self._require_pending(order)

        with translate_timeouts(self.db, "remove order item"):
            item.soft_delete(actor.identity_id)
            self.db.flush()
            self._recompute(order)
            safe_commit(self.db)

        self.db.refresh(order)
        logger.info("Order item removed", order_id=order.id, item_id=item_id)
        return order

    # =========================================================================
    # Status workflow
    # =========================================================================

    def update_status(self, order_id: int, new_status: str, actor: Actor) -> Order:
        """
        Move an order along pending -> preparing -> ready -> served, or cancel it.

        Raises:
            InvalidTransitionError: the move is not in the transition table
            InvalidStateError: the order moved concurrently
        """
        if new_status not in OrderStatus.ALL:
            raise ValidationError(f"Unknown order status '{new_status}'", field="status")

        self.gate(actor, Actions.UPDATE_ORDER_STATUS)
        order = self._load_order(order_id)
        self.store.authorize_entity(actor, Actions.UPDATE_ORDER_STATUS, "orders", order)

        current = order.status
        if new_status not in ORDER_TRANSITIONS.get(current, []):
            raise InvalidTransitionError("Order", current, new_status, order_id=order_id)

        with translate_timeouts(self.db, "update order status"):
            result = self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current, Order.deleted_at.is_(None))
                .values(status=new_status, updated_by_id=actor.identity_id)
                .execution_options(synchronize_session="fetch")
            )
            if result.rowcount == 0:
                self.db.rollback()
                raise InvalidStateError(
                    "Order",
                    current_state=self.db.scalar(select(Order.status).where(Order.id == order_id)),
                    expected_states=[current],
                    order_id=order_id,
                )
            # Cancelling drops the order out of its session's total
            if order.session_id is not None and new_status == OrderStatus.CANCELLED:
                self.sessions.recompute_total(order.session_id, commit=False)
            safe_commit(self.db)

        self.db.refresh(order)
        logger.info("Order status changed", order_id=order_id, old_status=current, new_status=new_status)
        self.publish(Event(
            type=EventType.ORDER_STATUS_CHANGED,
            tenant_id=order.tenant_id,
            table_id=order.table_id,
            session_id=order.session_id,
            entity={"order_id": order_id, "old_status": current, "status": new_status},
            actor=actor.to_dict(),
        ))
        return order

    # =========================================================================
    # Helpers
    # =========================================================================

    def _load_order(self, order_id: int) -> Order:
        order = self.store.get("orders", order_id)
        if order is None:
            raise NotAccessibleError("orders", order_id)
        return order

    @staticmethod
    def _require_pending(order: Order) -> None:
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError(
                "Order",
                current_state=order.status,
                expected_states=[OrderStatus.PENDING],
                order_id=order.id,
            )

    def _recompute(self, order: Order) -> None:
        self.ledger.recompute_order_total(order.id, commit=False)
        if order.session_id is not None:
            self.sessions.recompute_total(order.session_id, commit=False)
