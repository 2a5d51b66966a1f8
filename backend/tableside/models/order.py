"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import OrderStatus

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .table import TableSession, SessionCustomer


class Order(AuditMixin, Base):
    """
    A placed order, optionally attributed to a session and one of its customers.
    total_cents is the sum of live items and is only written by a recompute.
    """

    # "order" is a reserved SQL keyword
    __tablename__ = "customer_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant.id"), nullable=False, index=True
    )
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("table_session.id"), nullable=True, index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("session_customer.id"), nullable=True, index=True
    )
    table_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=True, index=True
    )
    status: Mapped[str] = mapped_column(Text, default=OrderStatus.PENDING, nullable=False, index=True)
    total_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    # Identity of whoever placed the order; checked for self-service update/delete.
    # Staff ids and session customer ids overlap, so the role travels with the id.
    placed_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, index=True)
    placed_by_role: Mapped[Optional[str]] = mapped_column(Text)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    session: Mapped[Optional["TableSession"]] = relationship(back_populates="orders")
    customer: Mapped[Optional["SessionCustomer"]] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_customer_order_session_status", "session_id", "status"),
        CheckConstraint(
            "status IN ('pending', 'preparing', 'ready', 'served', 'cancelled')",
            name="ck_customer_order_status",
        ),
        CheckConstraint("total_cents >= 0", name="ck_customer_order_total_non_negative"),
        # A customer is only ever set together with its session
        CheckConstraint(
            "customer_id IS NULL OR session_id IS NOT NULL",
            name="ck_customer_order_customer_needs_session",
        ),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status='{self.status}', session_id={self.session_id})>"


class OrderItem(AuditMixin, Base):
    """
    A line on an order. price_at_time_cents is a snapshot taken when the
    item was added and never follows later menu price changes.
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant.id"), nullable=False, index=True
    )
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("customer_order.id"), nullable=False, index=True
    )
    # Menu lives outside this service; no FK
    menu_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    item_name: Mapped[Optional[str]] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    price_at_time_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    order: Mapped["Order"] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_quantity_positive"),
        CheckConstraint("price_at_time_cents >= 0", name="chk_order_item_price_non_negative"),
    )

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_at_time_cents

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, qty={self.quantity})>"
