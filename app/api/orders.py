from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import AdminToken
from app.models import Order, get_db
from app.schemas.common import SuccessResponse
from app.schemas.orders import OrderCreateRequest, OrderCreateResponse, OrderResponse, OrderUpdateRequest
from app.services import order_store
from app.services.time_utils import isoformat_or_none

router = APIRouter()


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        order_id=order.order_id,
        customer_name=order.customer_name,
        customer_address=order.customer_address,
        postcode=order.postcode,
        region=order.region,
        country=order.country,
        phone=order.phone,
        product_name=order.product_name,
        quantity=order.quantity,
        total_amount=order.total_amount,
        shipping_weight=order.shipping_weight,
        shipping_method=order.shipping_method,
        shipping_cost=order.shipping_cost,
        delivery_eta=order.delivery_eta,
        payment_method=order.payment_method,
        order_status=order.order_status,
        courier_name=order.courier_name,
        tracking_link=order.tracking_link,
        external_payment_id=order.external_payment_id,
        external_tx_id=order.external_tx_id,
        user_external_id=order.user_external_id,
        has_refund=bool(order.has_refund),
        refund_reason=order.refund_reason,
        refunded_at=isoformat_or_none(order.refunded_at),
        created_at=isoformat_or_none(order.created_at),
    )


@router.get(
    "",
    response_model=list[OrderResponse],
    summary="List orders",
)
def list_orders(
    db: Annotated[Session, Depends(get_db)],
    phone: str | None = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """Newest orders first, optionally filtered by customer phone."""
    orders = order_store.list_orders(db, phone=phone, limit=limit, offset=offset)
    return [order_to_response(order) for order in orders]


@router.post(
    "",
    response_model=OrderCreateResponse,
    summary="Create order",
)
def create_order(
    body: OrderCreateRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Create an order at checkout.
    Requires order_id, customer_name and product_name; a repeated order_id is rejected with 409.
    """
    order = order_store.create_order(db, body.model_dump(exclude_none=True))
    return OrderCreateResponse(order_id=order.order_id)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
def get_order(
    order_id: str,
    db: Annotated[Session, Depends(get_db)],
):
    return order_to_response(order_store.get_order(db, order_id))


@router.put(
    "/{order_id}",
    response_model=SuccessResponse,
    summary="Update order fields (admin)",
)
def update_order(
    order_id: str,
    body: OrderUpdateRequest,
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
):
    """Updates shipping, status, tracking and payment fields. Unknown fields are ignored."""
    order_store.update_order_fields(db, order_id, body.model_dump(exclude_unset=True))
    return SuccessResponse(message="Order updated")
