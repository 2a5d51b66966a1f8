"""
Session Models: TableSession, SessionCustomer.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import SessionStatus

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .tenant import RestaurantTable
    from .order import Order


_ACTIVE_AND_LIVE = text("status = 'active' AND deleted_at IS NULL")
_LIVE = text("deleted_at IS NULL")


class TableSession(AuditMixin, Base):
    """
    One table's ordering window, shared by every customer at the table.

    Status moves active -> billed -> cleared. The tombstone (deleted_at) is
    orthogonal to status. total_cents is derived from attributed orders and
    only ever written by a recompute.
    """

    __tablename__ = "table_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant.id"), nullable=False, index=True
    )
    table_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), nullable=False, index=True
    )
    otp: Mapped[Optional[str]] = mapped_column(String(12))
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(Text, default=SessionStatus.ACTIVE, nullable=False, index=True)
    total_cents: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    opened_by_id: Mapped[Optional[int]] = mapped_column(BigInteger)
    opened_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cleared_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    table: Mapped["RestaurantTable"] = relationship(back_populates="sessions")
    customers: Mapped[list["SessionCustomer"]] = relationship(back_populates="session")
    orders: Mapped[list["Order"]] = relationship(back_populates="session")

    __table_args__ = (
        # One live active session per table
        Index(
            "uq_table_session_active_table",
            "table_id",
            unique=True,
            sqlite_where=_ACTIVE_AND_LIVE,
            postgresql_where=_ACTIVE_AND_LIVE,
        ),
        # Join codes are unique among a tenant's live active sessions
        Index(
            "uq_table_session_active_otp",
            "tenant_id",
            "otp",
            unique=True,
            sqlite_where=_ACTIVE_AND_LIVE,
            postgresql_where=_ACTIVE_AND_LIVE,
        ),
        Index("ix_table_session_tenant_status", "tenant_id", "status"),
        CheckConstraint(
            "status IN ('active', 'billed', 'cleared')",
            name="ck_table_session_status",
        ),
        CheckConstraint(
            "status != 'active' OR (otp IS NOT NULL AND otp_expires_at IS NOT NULL)",
            name="ck_table_session_active_has_otp",
        ),
        CheckConstraint("total_cents >= 0", name="ck_table_session_total_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<TableSession(id={self.id}, table_id={self.table_id}, status={self.status})>"


class SessionCustomer(AuditMixin, Base):
    """
    A person who joined a session with its OTP.

    contact holds the digits-only phone number; (session_id, contact) is the
    join idempotency key among live rows.
    """

    __tablename__ = "session_customer"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant.id"), nullable=False, index=True
    )
    session_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("table_session.id"), nullable=False, index=True
    )
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    contact: Mapped[str] = mapped_column(String(15), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    session: Mapped["TableSession"] = relationship(back_populates="customers")
    orders: Mapped[list["Order"]] = relationship(back_populates="customer")

    __table_args__ = (
        Index(
            "uq_session_customer_contact",
            "session_id",
            "contact",
            unique=True,
            sqlite_where=_LIVE,
            postgresql_where=_LIVE,
        ),
    )

    def __repr__(self) -> str:
        return f"<SessionCustomer(id={self.id}, session_id={self.session_id})>"
