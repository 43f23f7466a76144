import logging
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from app.errors import ConflictError, GatewayError
from app.models import Order, commit_or_raise
from app.models.order import ORDER_STATUS_CANCELLED, ORDER_STATUS_PAID
from app.services.order_store import FoundBy, find_order_for_payment, get_order
from app.services.pi_gateway import NETWORK_NAME, PiGatewayClient

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    NONE = "none"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ApproveResult:
    order_id: str
    payment_id: str
    message: str
    gateway_called: bool


@dataclass(frozen=True)
class CancelResult:
    payment_id: str
    found_by: FoundBy
    order_id: str | None = None

    @property
    def message(self) -> str:
        if self.found_by is FoundBy.NOT_FOUND:
            return "Payment cancelled (no associated order found)"
        return "Payment cancelled successfully"


def payment_state(order: Order) -> PaymentState:
    """Local view of an order's payment; PENDING_APPROVAL only exists on the gateway side."""
    if order.order_status == ORDER_STATUS_PAID:
        return PaymentState.COMPLETED
    if order.order_status == ORDER_STATUS_CANCELLED:
        return PaymentState.CANCELLED
    if order.external_payment_id:
        return PaymentState.APPROVED
    return PaymentState.NONE


def approve(db: Session, gateway: PiGatewayClient, order_id: str, payment_id: str) -> ApproveResult:
    order = get_order(db, order_id)

    if order.external_payment_id == payment_id:
        logger.info("Payment %s already approved for order %s", payment_id, order_id)
        return ApproveResult(order_id, payment_id, "Payment already approved", gateway_called=False)

    if order.external_payment_id:
        try:
            prior = gateway.get_payment_status(order.external_payment_id)
        except GatewayError as exc:
            # only a readable, still open prior payment blocks a new one
            logger.warning(
                "Order %s: status of prior payment %s unavailable (%s), continuing",
                order_id,
                order.external_payment_id,
                exc.message,
            )
            prior = None
        if prior is not None and prior.is_open:
            raise ConflictError(
                "Payment already in progress. Please complete the pending payment.",
                hint=f"existing_payment_id={order.external_payment_id}",
            )
        logger.info(
            "Order %s replacing finished payment %s with %s", order_id, order.external_payment_id, payment_id
        )

    current = gateway.get_payment_status(payment_id)
    if current.approved:
        message = "Payment already approved"
    else:
        gateway.approve_payment(payment_id)
        message = "Payment approved successfully"

    order.external_payment_id = payment_id
    commit_or_raise(db)
    logger.info("Payment %s approved for order %s", payment_id, order_id)
    return ApproveResult(order_id, payment_id, message, gateway_called=True)


def complete(db: Session, gateway: PiGatewayClient, order_id: str, payment_id: str, txid: str) -> Order:
    order = get_order(db, order_id)

    if order.order_status == ORDER_STATUS_PAID and order.external_tx_id == txid:
        logger.info("Order %s already paid with txid %s", order_id, txid)
        return order

    status = gateway.get_payment_status(payment_id)
    if not status.completed:
        gateway.complete_payment(payment_id, txid)
    else:
        logger.info("Payment %s already completed on gateway", payment_id)

    order.order_status = ORDER_STATUS_PAID
    order.external_payment_id = payment_id
    order.external_tx_id = txid
    order.payment_method = NETWORK_NAME
    commit_or_raise(db)
    db.refresh(order)
    logger.info("Order %s paid: payment=%s txid=%s", order_id, payment_id, txid)
    return order


def cancel(db: Session, payment_id: str, order_id: str | None = None) -> CancelResult:
    lookup = find_order_for_payment(db, payment_id, order_id)
    if not lookup.found:
        logger.info("Cancel for payment %s matched no order; nothing to do", payment_id)
        return CancelResult(payment_id, FoundBy.NOT_FOUND)

    order = lookup.order
    if order.order_status == ORDER_STATUS_PAID:
        raise ConflictError(f"Order {order.order_id} is already paid and cannot be cancelled")

    order.external_payment_id = None
    order.external_tx_id = None
    order.order_status = ORDER_STATUS_CANCELLED
    commit_or_raise(db)
    logger.info("Order %s cancelled (found by %s)", order.order_id, lookup.found_by.value)
    return CancelResult(payment_id, lookup.found_by, order.order_id)
