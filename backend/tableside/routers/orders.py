"""
Orders router.

Placing orders, editing pending orders, the kitchen status workflow, and
attributing orders to a session and customer.
"""

from fastapi import APIRouter, Depends, status

from tableside.core.dependencies import Services, get_actor, get_services
from tableside.models import Order
from tableside.schemas import (
    AttributeOrderRequest,
    OrderItemOutput,
    OrderLineInput,
    OrderOutput,
    OrderStatusUpdate,
    PlaceOrderRequest,
)
from tableside.services import OrderLine
from tableside.services.permissions import Actor


router = APIRouter(prefix="/api/orders", tags=["orders"])


def _order_output(order: Order) -> OrderOutput:
    output = OrderOutput.model_validate(order)
    output.items = [
        OrderItemOutput.model_validate(item)
        for item in order.items
        if item.deleted_at is None
    ]
    return output


def _to_line(line: OrderLineInput) -> OrderLine:
    return OrderLine(
        menu_item_id=line.menu_item_id,
        quantity=line.quantity,
        price_cents=line.price_cents,
        item_name=line.item_name,
    )


@router.post("", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def place_order(
    body: PlaceOrderRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    """
    Place an order. Line prices are stored as given and never follow
    later menu changes.
    """
    order = services.orders.place_order(
        body.restaurant_id,
        [_to_line(line) for line in body.items],
        actor,
        session_id=body.session_id,
        customer_id=body.customer_id,
        notes=body.notes,
    )
    return _order_output(order)


@router.get("/{order_id}", response_model=OrderOutput)
def get_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    return _order_output(services.orders.get_order(order_id, actor))


@router.post("/{order_id}/attribution", response_model=OrderOutput)
def attribute_order(
    order_id: int,
    body: AttributeOrderRequest,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    """Attach an order to an active session and optionally one of its customers."""
    order = services.ledger.attribute(order_id, body.session_id, body.customer_id, actor)
    return _order_output(order)


@router.delete("/{order_id}/attribution", response_model=OrderOutput)
def detach_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    return _order_output(services.ledger.detach(order_id, actor))


@router.post("/{order_id}/items", response_model=OrderOutput, status_code=status.HTTP_201_CREATED)
def add_order_item(
    order_id: int,
    body: OrderLineInput,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    services.orders.add_item(order_id, _to_line(body), actor)
    return _order_output(services.orders.get_order(order_id, actor))


@router.delete("/{order_id}/items/{item_id}", response_model=OrderOutput)
def remove_order_item(
    order_id: int,
    item_id: int,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    order = services.orders.remove_item(item_id, actor, order_id=order_id)
    return _order_output(order)


@router.put("/{order_id}/status", response_model=OrderOutput)
def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    actor: Actor = Depends(get_actor),
    services: Services = Depends(get_services),
) -> OrderOutput:
    """pending -> preparing -> ready -> served, or cancelled from any non-terminal state."""
    return _order_output(services.orders.update_status(order_id, body.status, actor))
