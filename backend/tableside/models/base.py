"""
Base class and AuditMixin for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGINT on Postgres; SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class AuditMixin:
    """
    Mixin providing soft delete and audit trail fields for all models.

    Fields added:
    - is_active: mirror of "not tombstoned" (False = deleted)
    - created_at, updated_at, deleted_at: Audit timestamps
    - created_by_id, updated_by_id, deleted_by_id: actor identity tracking

    Methods:
    - soft_delete(actor_id): tombstone the row
    - restore(): clear the tombstone
    """

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    # No FK: actors live in the external identity system
    created_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    deleted_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self, actor_id: int | None) -> None:
        """Tombstone the row with audit trail."""
        self.is_active = False
        self.deleted_at = utcnow()
        self.deleted_by_id = actor_id

    def restore(self) -> None:
        """
        Clear the tombstone.

        Only the tombstone fields are touched, so the row comes back exactly
        as it was visible before the delete.
        """
        self.is_active = True
        self.deleted_at = None
        self.deleted_by_id = None

    def set_created_by(self, actor_id: int | None) -> None:
        self.created_by_id = actor_id

    def set_updated_by(self, actor_id: int | None) -> None:
        self.updated_by_id = actor_id
        self.updated_at = utcnow()

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        id_val = getattr(self, "id", None)
        state = "deleted" if self.deleted_at is not None else "active"
        return f"<{class_name}(id={id_val}, {state})>"
