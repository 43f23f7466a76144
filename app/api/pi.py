import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.orders import order_to_response
from app.dependencies import Gateway
from app.models import get_db
from app.schemas.payments import (
    ApproveRequest,
    ApproveResponse,
    CancelRequest,
    CancelResponse,
    CompleteRequest,
    CompleteResponse,
)
from app.services import payment_lifecycle

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/approve",
    response_model=ApproveResponse,
    summary="Approve a Pi payment for an order",
)
def approve_payment(
    body: ApproveRequest,
    gateway: Gateway,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Called by the frontend once the Pi SDK reports the payment ready for server approval.
    Rejects a new payment while another payment for the same order is still open.
    """
    logger.info("Approve request: payment=%s order=%s", body.payment_id, body.order_id)
    result = payment_lifecycle.approve(db, gateway, body.order_id, body.payment_id)
    return ApproveResponse(message=result.message, payment_id=result.payment_id, order_id=result.order_id)


@router.post(
    "/complete",
    response_model=CompleteResponse,
    summary="Complete a Pi payment and mark the order paid",
)
def complete_payment(
    body: CompleteRequest,
    gateway: Gateway,
    db: Annotated[Session, Depends(get_db)],
):
    logger.info("Complete request: payment=%s order=%s txid=%s", body.payment_id, body.order_id, body.txid)
    order = payment_lifecycle.complete(db, gateway, body.order_id, body.payment_id, body.txid)
    return CompleteResponse(order=order_to_response(order))


@router.post(
    "/cancel",
    response_model=CancelResponse,
    summary="Cancel a Pi payment",
)
def cancel_payment(
    body: CancelRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """Succeeds even when no order matches the payment."""
    result = payment_lifecycle.cancel(db, body.payment_id, body.order_id)
    return CancelResponse(
        message=result.message,
        payment_id=result.payment_id,
        order_id=result.order_id,
        found_by=result.found_by.value,
    )
