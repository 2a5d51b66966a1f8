"""
Pydantic schemas for the session core API.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

SessionStatus = Literal["active", "billed", "cleared"]
OrderStatus = Literal["pending", "preparing", "ready", "served", "cancelled"]


# =============================================================================
# Session Schemas
# =============================================================================


class OpenSessionRequest(BaseModel):
    """Request to open a session on a table."""

    table_id: int = Field(gt=0)
    restaurant_id: int = Field(gt=0)


class SessionOutput(BaseModel):
    """Staff view of a session, including its join code."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    table_id: int
    status: SessionStatus
    otp: str | None = None
    otp_expires_at: datetime | None = None
    total_cents: int
    opened_by_id: int | None = None
    opened_at: datetime | None = None
    closed_at: datetime | None = None
    cleared_at: datetime | None = None


class PublicSessionOutput(BaseModel):
    """Session as seen by customers: no join code."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    table_id: int
    status: SessionStatus
    total_cents: int
    opened_at: datetime | None = None


class TableScanOutput(BaseModel):
    """What a customer sees after scanning a table's QR code."""

    table_id: int
    table_number: int
    restaurant_id: int
    restaurant_name: str
    status: str
    has_active_session: bool


class JoinSessionRequest(BaseModel):
    """
    Request to join a session with the code shown at the table.
    Bounds here are loose; JoinHandler applies the exact rules.
    """

    otp: str = Field(max_length=12)
    table_id: int = Field(gt=0)
    display_name: str = Field(max_length=200)
    contact: str = Field(max_length=40)


class CustomerOutput(BaseModel):
    """A customer who joined a session."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: int
    display_name: str
    joined_at: datetime | None = None


class JoinSessionResponse(BaseModel):
    """
    Join result. access_token identifies the customer on later calls
    (reading the session, ordering).
    """

    customer: CustomerOutput
    session: PublicSessionOutput
    access_token: str
    token_type: str = "Bearer"
    expires_in: int


class SessionSummaryOutput(BaseModel):
    """Per-customer totals. Key "unassigned" holds orders with no customer."""

    session_id: int
    per_customer_totals: dict[str, int]
    order_count: int
    grand_total_cents: int


class OrderBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: int | None = None
    status: OrderStatus
    total_cents: int


class SessionDetailOutput(BaseModel):
    """Staff detail view of one session."""

    session: SessionOutput
    customers: list[CustomerOutput]
    orders: list[OrderBrief]
    order_count: int
    average_order_cents: int
    duration_seconds: int


# =============================================================================
# Order Schemas
# =============================================================================


class OrderLineInput(BaseModel):
    """
    One line of an order. price_cents is the menu price the caller read,
    stored as the line's snapshot.
    """

    menu_item_id: int = Field(gt=0)
    quantity: int
    price_cents: int
    item_name: str | None = Field(default=None, max_length=200)


class PlaceOrderRequest(BaseModel):
    restaurant_id: int = Field(gt=0)
    items: list[OrderLineInput] = Field(min_length=1)
    session_id: int | None = Field(default=None, gt=0)
    customer_id: int | None = Field(default=None, gt=0)
    notes: str | None = Field(default=None, max_length=500)


class OrderItemOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    menu_item_id: int
    item_name: str | None = None
    quantity: int
    price_at_time_cents: int


class OrderOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    session_id: int | None = None
    customer_id: int | None = None
    table_id: int | None = None
    status: OrderStatus
    total_cents: int
    placed_by_id: int | None = None
    placed_by_role: str | None = None
    notes: str | None = None
    items: list[OrderItemOutput] = []


class AttributeOrderRequest(BaseModel):
    session_id: int = Field(gt=0)
    customer_id: int | None = Field(default=None, gt=0)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


# =============================================================================
# Admin Schemas
# =============================================================================


class EntityOutput(BaseModel):
    """Result of a delete/restore on any registered entity."""

    entity_type: str
    entity_id: int
    deleted_at: datetime | None = None
    is_active: bool


class DeletedEntityOutput(BaseModel):
    entity_id: int
    deleted_at: datetime | None = None
    deleted_by_id: int | None = None


class PurgeOutput(BaseModel):
    success: bool
    message: str
    entity_type: str
    entity_id: int
