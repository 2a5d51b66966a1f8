"""
Tests for OrderService: placement, line edits and the status workflow.
"""

import pytest

from shared.config.constants import EventType, OrderStatus, Roles
from shared.utils.exceptions import (
    AuthorizationError,
    InvalidStateError,
    InvalidTransitionError,
    NotAccessibleError,
    ValidationError,
)
from tableside.models import OrderItem, TableSession
from tableside.services import OrderLine
from tableside.services.permissions import Actor


def customer_actor(customer):
    return Actor(
        role=Roles.CUSTOMER,
        tenant_id=customer.tenant_id,
        identity_id=customer.id,
        session_id=customer.session_id,
    )


class TestPlaceOrder:
    def test_total_is_sum_of_lines(self, place_order, sink):
        order = place_order([(2, 12500), (1, 4000)])

        assert order.status == OrderStatus.PENDING
        assert order.total_cents == 29000
        assert len(order.items) == 2
        assert sink.types[-1] == EventType.ORDER_PLACED

    def test_price_is_snapshotted(self, place_order, db_session):
        order = place_order([(1, 12500)])
        item = order.items[0]
        assert item.price_at_time_cents == 12500

    def test_inside_session_updates_total(self, place_order, active_session, db_session):
        place_order([(1, 7000)], session_id=active_session.id)
        db_session.expire_all()
        assert db_session.get(TableSession, active_session.id).total_cents == 7000

    def test_customer_order_attributed_to_self(self, services, active_session, join_customer):
        asha = join_customer(active_session)
        order = services.orders.place_order(
            1, [OrderLine(menu_item_id=1, quantity=1, price_cents=500)],
            customer_actor(asha), session_id=active_session.id,
        )
        assert order.customer_id == asha.id
        assert order.placed_by_id == asha.id

    def test_empty_order_rejected(self, services, seed_restaurant, waiter):
        with pytest.raises(ValidationError):
            services.orders.place_order(1, [], waiter)

    @pytest.mark.parametrize("quantity,price", [(0, 100), (100, 100), (1, -1)])
    def test_bad_line_rejected(self, place_order, seed_restaurant, quantity, price):
        with pytest.raises(ValidationError):
            place_order([(quantity, price)])

    def test_customer_without_session_rejected(self, services, seed_restaurant, waiter):
        with pytest.raises(ValidationError):
            services.orders.place_order(
                1, [OrderLine(menu_item_id=1, quantity=1, price_cents=500)], waiter, customer_id=1,
            )

    def test_billed_session_rejected(self, place_order, active_session, services, waiter):
        services.sessions.close(active_session.id, waiter)
        with pytest.raises(InvalidStateError):
            place_order([(1, 500)], session_id=active_session.id)

    def test_other_tenant_denied(self, place_order, seed_restaurant, other_waiter):
        with pytest.raises(AuthorizationError):
            place_order([(1, 500)], actor=other_waiter)


class TestLines:
    def test_add_item(self, services, place_order, waiter):
        order = place_order([(1, 1000)])
        services.orders.add_item(order.id, OrderLine(menu_item_id=9, quantity=2, price_cents=300), waiter)
        assert services.orders.get_order(order.id, waiter).total_cents == 1600

    def test_remove_item(self, services, place_order, waiter, db_session):
        order = place_order([(1, 1000), (1, 250)])
        item = next(i for i in order.items if i.price_at_time_cents == 250)

        order = services.orders.remove_item(item.id, waiter)

        assert order.total_cents == 1000
        assert db_session.get(OrderItem, item.id).deleted_at is not None

    def test_remove_item_of_other_order(self, services, place_order, waiter):
        a = place_order([(1, 1000)])
        b = place_order([(1, 1000)])
        with pytest.raises(NotAccessibleError):
            services.orders.remove_item(a.items[0].id, waiter, order_id=b.id)

    def test_lines_frozen_after_pending(self, services, place_order, waiter):
        order = place_order([(1, 1000)])
        services.orders.update_status(order.id, OrderStatus.PREPARING, waiter)
        with pytest.raises(InvalidStateError):
            services.orders.add_item(order.id, OrderLine(menu_item_id=9, quantity=1, price_cents=1), waiter)

    def test_customer_edits_only_own_order(self, services, active_session, join_customer):
        asha = join_customer(active_session, "Asha", "9876543210")
        ravi = join_customer(active_session, "Ravi", "9123456780")
        line = OrderLine(menu_item_id=1, quantity=1, price_cents=500)
        order = services.orders.place_order(1, [line], customer_actor(asha), session_id=active_session.id)

        services.orders.add_item(order.id, line, customer_actor(asha))
        with pytest.raises(AuthorizationError):
            services.orders.add_item(order.id, line, customer_actor(ravi))

    def test_customer_cannot_edit_staff_order_with_same_id(self, services, active_session, join_customer, owner):
        """Staff ids and customer ids overlap; ownership needs the role to match too."""
        line = OrderLine(menu_item_id=9, quantity=5, price_cents=99900)
        staff_order = services.orders.place_order(1, [line], owner, session_id=active_session.id)
        asha = join_customer(active_session)
        assert asha.id == owner.identity_id

        assert staff_order.placed_by_role == Roles.OWNER
        with pytest.raises(AuthorizationError):
            services.orders.add_item(staff_order.id, line, customer_actor(asha))
        with pytest.raises(AuthorizationError):
            services.orders.get_order(staff_order.id, customer_actor(asha))
        assert services.orders.get_order(staff_order.id, owner).total_cents == 99900 * 5

    def test_customer_reads_own_order(self, services, active_session, join_customer):
        asha = join_customer(active_session, "Asha", "9876543210")
        ravi = join_customer(active_session, "Ravi", "9123456780")
        line = OrderLine(menu_item_id=1, quantity=1, price_cents=500)
        order = services.orders.place_order(1, [line], customer_actor(asha))

        assert services.orders.get_order(order.id, customer_actor(asha)).id == order.id
        with pytest.raises(AuthorizationError):
            services.orders.get_order(order.id, customer_actor(ravi))

    def test_customer_orders_into_own_session_by_default(self, services, active_session, join_customer):
        asha = join_customer(active_session)
        order = services.orders.place_order(
            1, [OrderLine(menu_item_id=1, quantity=1, price_cents=500)], customer_actor(asha),
        )
        assert order.session_id == active_session.id
        assert order.customer_id == asha.id

    def test_customer_cannot_order_into_other_session(
        self, services, active_session, second_table, join_customer, waiter,
    ):
        other = services.sessions.open(second_table.id, second_table.tenant_id, waiter)
        asha = join_customer(active_session)
        with pytest.raises(AuthorizationError):
            services.orders.place_order(
                1, [OrderLine(menu_item_id=1, quantity=1, price_cents=500)],
                customer_actor(asha), session_id=other.id,
            )


class TestStatusWorkflow:
    def test_happy_path(self, services, place_order, waiter, sink):
        order = place_order([(1, 1000)])
        for status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED):
            order = services.orders.update_status(order.id, status, waiter)
        assert order.status == OrderStatus.SERVED
        assert sink.of_type(EventType.ORDER_STATUS_CHANGED)[-1].entity["old_status"] == OrderStatus.READY

    def test_skipping_a_step_rejected(self, services, place_order, waiter):
        order = place_order([(1, 1000)])
        with pytest.raises(InvalidTransitionError):
            services.orders.update_status(order.id, OrderStatus.SERVED, waiter)

    def test_served_is_terminal(self, services, place_order, waiter):
        order = place_order([(1, 1000)])
        for status in (OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED):
            services.orders.update_status(order.id, status, waiter)
        with pytest.raises(InvalidTransitionError):
            services.orders.update_status(order.id, OrderStatus.CANCELLED, waiter)

    def test_unknown_status(self, services, place_order, waiter):
        order = place_order([(1, 1000)])
        with pytest.raises(ValidationError):
            services.orders.update_status(order.id, "eaten", waiter)

    def test_cancel_drops_from_session_total(self, services, place_order, active_session, waiter, db_session):
        order = place_order([(1, 1000)], session_id=active_session.id)
        services.orders.update_status(order.id, OrderStatus.CANCELLED, waiter)

        db_session.expire_all()
        assert db_session.get(TableSession, active_session.id).total_cents == 0

    def test_customer_cannot_move_status(self, services, active_session, join_customer, place_order):
        asha = join_customer(active_session)
        order = place_order([(1, 1000)], session_id=active_session.id, customer_id=asha.id)
        with pytest.raises(AuthorizationError):
            services.orders.update_status(order.id, OrderStatus.PREPARING, customer_actor(asha))
