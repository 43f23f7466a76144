import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.dependencies import AdminToken, Gateway, RefundPollPolicy
from app.models import Order, Refund, get_db
from app.schemas.refunds import (
    RefundCancelRequest,
    RefundCancelResponse,
    RefundCreateRequest,
    RefundCreateResponse,
    RefundDetail,
    RefundListResponse,
    RefundOrderSummary,
    RefundProcessRequest,
    RefundProcessResponse,
    RefundStatusResponse,
    SweepResponse,
)
from app.services import refunds as refund_service
from app.services.time_utils import isoformat_or_none

router = APIRouter()
logger = logging.getLogger(__name__)


def refund_to_detail(refund: Refund, order: Order | None) -> RefundDetail:
    summary = RefundOrderSummary()
    if order is not None:
        summary = RefundOrderSummary(
            customer_name=order.customer_name,
            product=order.product_name,
            order_total=order.total_amount,
            order_status=order.order_status,
            phone=order.phone,
        )
    return RefundDetail(
        refund_id=refund.refund_id,
        order_id=refund.order_id,
        user_uid=refund.user_external_id,
        amount_pi=refund.amount,
        amount_rm=refund.amount_local,
        exchange_rate=refund.exchange_rate,
        memo=refund.memo,
        metadata=refund_service.load_metadata(refund),
        payment_identifier=refund.external_payment_id,
        txid=refund.external_tx_id,
        refund_status=refund.status,
        error_message=refund.error_message,
        retry_count=refund.retry_count or 0,
        processed_by=refund.processed_by,
        created_at=isoformat_or_none(refund.created_at),
        initiated_at=isoformat_or_none(refund.initiated_at),
        completed_at=isoformat_or_none(refund.completed_at),
        order=summary,
    )


@router.post(
    "/create",
    response_model=RefundCreateResponse,
    summary="Create a pending refund for an order",
)
def create_refund(
    body: RefundCreateRequest,
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
):
    """Converts the local-currency amount to Pi at the current rate and stores a pending refund."""
    refund = refund_service.create_refund(db, body.order_id, body.amount_rm, body.reason, body.admin_id)
    return RefundCreateResponse(
        refund_id=refund.refund_id,
        order_id=refund.order_id,
        amount_pi=refund.amount,
        amount_rm=refund.amount_local,
        exchange_rate=refund.exchange_rate,
        user_uid=refund.user_external_id,
        status=refund.status,
    )


@router.post(
    "/process",
    response_model=RefundProcessResponse,
    summary="Send a pending refund to the customer's Pi wallet",
)
def process_refund(
    body: RefundProcessRequest,
    _admin: AdminToken,
    gateway: Gateway,
    policy: RefundPollPolicy,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Creates the outbound payment and waits a bounded time for blockchain confirmation.
    Returns status "processing" when confirmation has not arrived yet; the sweep or a later
    status check picks the refund up.
    """
    logger.info("Process refund request: %s", body.refund_id)
    outcome = refund_service.process_refund(db, gateway, body.refund_id, policy)
    return RefundProcessResponse(
        refund_id=outcome.refund_id,
        status=outcome.status,
        payment_identifier=outcome.payment_id,
        txid=outcome.txid,
        message=outcome.message,
    )


@router.post(
    "/cancel",
    response_model=RefundCancelResponse,
    summary="Cancel a pending or failed refund",
)
def cancel_refund(
    body: RefundCancelRequest,
    _admin: AdminToken,
    gateway: Gateway,
    db: Annotated[Session, Depends(get_db)],
):
    """Cancels the outbound payment on the gateway first when one was already created."""
    refund = refund_service.cancel_refund(db, gateway, body.refund_id, body.reason)
    return RefundCancelResponse(refund_id=refund.refund_id, status=refund.status)


@router.get(
    "/status",
    response_model=RefundStatusResponse,
    summary="Get refund details",
)
def refund_status(
    refund_id: Annotated[str, Query(min_length=1)],
    db: Annotated[Session, Depends(get_db)],
):
    refund, order = refund_service.get_refund_status(db, refund_id)
    return RefundStatusResponse(refund=refund_to_detail(refund, order))


@router.get(
    "/list",
    response_model=RefundListResponse,
    summary="List refunds",
)
def list_refunds(
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
    status: str = "all",
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    rows, total = refund_service.list_refunds(db, status=status, limit=limit, offset=offset)
    refunds = [refund_to_detail(refund, order) for refund, order in rows]
    return RefundListResponse(
        refunds=refunds,
        count=len(refunds),
        total=total,
        limit=limit,
        offset=offset,
        filter=status,
    )


@router.post(
    "/cleanup",
    response_model=SweepResponse,
    summary="Reconcile incomplete outbound payments",
)
def cleanup(
    _admin: AdminToken,
    gateway: Gateway,
    db: Annotated[Session, Depends(get_db)],
):
    report = refund_service.sweep_incomplete_payments(db, gateway)
    if not report.total_incomplete:
        message = "No incomplete payments found"
    else:
        message = f"Processed {len(report.results)} incomplete payments"
    return SweepResponse(
        message=message,
        results=[result.to_dict() for result in report.results],
        total_incomplete=report.total_incomplete,
    )
