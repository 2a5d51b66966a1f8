"""
Multi-Tenancy Models: Restaurant and RestaurantTable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.config.constants import TableStatus

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .table import TableSession


class Restaurant(AuditMixin, Base):
    """
    A restaurant, the tenant boundary.
    Every other row carries the restaurant id as tenant_id.
    """

    __tablename__ = "restaurant"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    slug: Mapped[str] = mapped_column(Text, unique=True, nullable=False)

    tables: Mapped[list["RestaurantTable"]] = relationship(back_populates="restaurant")

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, slug='{self.slug}')>"


class RestaurantTable(AuditMixin, Base):
    """
    Physical table in a restaurant, identified to customers by its QR code.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    tenant_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("restaurant.id"), nullable=False, index=True
    )
    table_number: Mapped[int] = mapped_column(Integer, nullable=False)
    qr_code: Mapped[Optional[str]] = mapped_column(Text)
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    status: Mapped[str] = mapped_column(Text, default=TableStatus.AVAILABLE, index=True)

    restaurant: Mapped["Restaurant"] = relationship(back_populates="tables")
    sessions: Mapped[list["TableSession"]] = relationship(back_populates="table")

    __table_args__ = (
        UniqueConstraint("tenant_id", "table_number", name="uq_restaurant_table_number"),
        Index("ix_restaurant_table_qr_code", "qr_code"),
    )

    def __repr__(self) -> str:
        return f"<RestaurantTable(id={self.id}, number={self.table_number}, tenant_id={self.tenant_id})>"
