"""
Refund orchestration: refunds are paid back to the customer as app-to-user (A2U)
payments on the Pi Platform.

State machine::

    pending -> processing -> completed
                   |
                   +-> failed        (any gateway step error)
    pending|failed -> cancelled       (admin, outbound payment cancelled first)
    processing     -> cancelled       (admin, only before an outbound payment exists)
    processing     -> cancelled       (sweep, gateway has no transaction)

A refund leaves ``pending`` through a single conditional UPDATE, so two concurrent
``process_refund`` calls cannot both create an outbound payment.
"""

import json
import logging
import secrets
import time
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import settings
from app.errors import AppError, ConflictError, GatewayError, NotFoundError, ValidationError
from app.models import Order, Refund, commit_or_raise
from app.models.refund import (
    REFUND_CANCELLED,
    REFUND_COMPLETED,
    REFUND_FAILED,
    REFUND_PENDING,
    REFUND_PROCESSING,
    REFUND_STATUSES,
)
from app.services.exchange_rates import PI_PRECISION, get_current_rate
from app.services.order_store import get_order
from app.services.pi_gateway import PaymentStatus, PiGatewayClient
from app.services.time_utils import utcnow

logger = logging.getLogger(__name__)

GATEWAY_CANCELLED_MESSAGE = "payment was cancelled by gateway"
SWEEP_CANCELLED_MESSAGE = "Cancelled - no blockchain transaction created"
DEFAULT_ADMIN_ID = "admin"
MAX_REFUND_LIST_LIMIT = 200


@dataclass(frozen=True)
class PollPolicy:
    """Bounded polling cadence; ``sleep`` and ``clock`` are injectable for tests."""

    attempts: int = 10
    interval_seconds: float = 1.0
    deadline_seconds: float = 25.0
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def from_settings(cls) -> "PollPolicy":
        return cls(
            attempts=settings.REFUND_POLL_ATTEMPTS,
            interval_seconds=settings.REFUND_POLL_INTERVAL_SECONDS,
            deadline_seconds=settings.REFUND_POLL_DEADLINE_SECONDS,
        )


class PollOutcome(str, Enum):
    SETTLED = "settled"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    attempts: int
    status: PaymentStatus | None = None


@dataclass(frozen=True)
class RefundOutcome:
    refund_id: str
    status: str
    payment_id: str | None = None
    txid: str | None = None
    message: str = ""


@dataclass
class SweepResult:
    payment_id: str
    action: str
    success: bool
    txid: str | None = None
    reason: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


@dataclass
class SweepReport:
    total_incomplete: int
    results: list[SweepResult] = field(default_factory=list)


def generate_refund_id() -> str:
    return f"REF_{int(time.time() * 1000)}{secrets.token_hex(3).upper()}"


def load_metadata(refund: Refund) -> dict[str, Any]:
    if not refund.metadata_json:
        return {}
    try:
        return json.loads(refund.metadata_json)
    except ValueError:
        logger.warning("Refund %s has unreadable metadata", refund.refund_id)
        return {}


def get_refund(db: Session, refund_id: str) -> Refund:
    refund = db.query(Refund).filter(Refund.refund_id == refund_id).first()
    if refund is None:
        raise NotFoundError(f"Refund {refund_id} not found")
    return refund


def create_refund(
    db: Session,
    order_id: str,
    amount_local,
    reason: str,
    admin_id: str | None = None,
) -> Refund:
    order = get_order(db, order_id)

    if not order.user_external_id:
        raise ValidationError(
            "Cannot refund this order. Order is missing the payer's Pi user id; "
            "only orders paid with Pi can be refunded."
        )

    try:
        amount_local = Decimal(str(amount_local))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Refund amount must be a number") from exc
    if not amount_local.is_finite() or amount_local <= 0:
        raise ValidationError("Refund amount must be greater than 0")
    order_total = Decimal(str(order.total_amount or 0))
    if amount_local > order_total:
        raise ValidationError(f"Refund amount (RM {amount_local}) exceeds order total (RM {order_total})")

    existing = (
        db.query(Refund)
        .filter(Refund.order_id == order_id, Refund.status != REFUND_CANCELLED)
        .first()
    )
    if existing is not None:
        raise ConflictError(f"Order already has a {existing.status} refund ({existing.refund_id})")

    current = get_current_rate(db)
    if current.fallback:
        logger.warning("No exchange rate configured, refund for %s uses fallback %s", order_id, current.rate)
    amount = (amount_local / current.rate).quantize(PI_PRECISION, rounding=ROUND_HALF_UP)

    processed_by = admin_id or DEFAULT_ADMIN_ID
    refund = Refund(
        refund_id=generate_refund_id(),
        order_id=order.order_id,
        user_external_id=order.user_external_id,
        amount=amount,
        amount_local=amount_local,
        exchange_rate=current.rate,
        memo=reason,
        metadata_json=json.dumps(
            {
                "orderId": order.order_id,
                "customerName": order.customer_name,
                "adminId": processed_by,
                "originalAmount": str(order_total),
                "reason": reason,
                "createdAt": utcnow().isoformat(),
            }
        ),
        status=REFUND_PENDING,
        retry_count=0,
        processed_by=processed_by,
    )
    db.add(refund)
    commit_or_raise(db, conflict_message=f"Order {order_id} already has a refund in progress")
    db.refresh(refund)
    logger.info(
        "Refund %s created: order=%s amount_pi=%s amount_rm=%s rate=%s",
        refund.refund_id,
        order_id,
        amount,
        amount_local,
        current.rate,
    )
    return refund


def _claim_for_processing(db: Session, refund_id: str) -> None:
    claimed = (
        db.query(Refund)
        .filter(Refund.refund_id == refund_id, Refund.status == REFUND_PENDING)
        .update(
            {Refund.status: REFUND_PROCESSING, Refund.initiated_at: utcnow()},
            synchronize_session=False,
        )
    )
    commit_or_raise(db)
    if claimed == 0:
        raise ConflictError(f"Refund {refund_id} is already being processed")


def _mark_failed(db: Session, refund: Refund, message: str) -> None:
    refund.status = REFUND_FAILED
    refund.error_message = message
    refund.retry_count = (refund.retry_count or 0) + 1
    commit_or_raise(db)
    logger.warning("Refund %s failed: %s", refund.refund_id, message)


def _mark_completed(db: Session, refund: Refund, txid: str) -> None:
    now = utcnow()
    refund.status = REFUND_COMPLETED
    refund.external_tx_id = txid
    refund.completed_at = now
    order = db.query(Order).filter(Order.order_id == refund.order_id).first()
    if order is not None:
        order.has_refund = True
        order.refund_reason = refund.memo
        order.refunded_at = now
    commit_or_raise(db)
    logger.info("Refund %s completed with txid %s", refund.refund_id, txid)


def wait_for_settlement(gateway: PiGatewayClient, payment_id: str, policy: PollPolicy) -> PollResult:
    """Poll the payment until it settles, is cancelled, or the attempt/deadline budget runs out."""
    started = policy.clock()
    last_status = None
    attempt = 0
    while attempt < policy.attempts:
        if policy.clock() - started + policy.interval_seconds > policy.deadline_seconds:
            logger.warning("Polling %s stopped at deadline after %s attempts", payment_id, attempt)
            break
        policy.sleep(policy.interval_seconds)
        attempt += 1
        last_status = gateway.get_payment_status(payment_id)
        logger.info(
            "Poll %s/%s for %s: approved=%s verified=%s completed=%s txid=%s",
            attempt,
            policy.attempts,
            payment_id,
            last_status.approved,
            last_status.transaction_verified,
            last_status.completed,
            last_status.txid,
        )
        if last_status.cancelled:
            return PollResult(PollOutcome.CANCELLED, attempt, last_status)
        if last_status.is_settled:
            return PollResult(PollOutcome.SETTLED, attempt, last_status)
    return PollResult(PollOutcome.TIMED_OUT, attempt, last_status)


def process_refund(
    db: Session,
    gateway: PiGatewayClient,
    refund_id: str,
    policy: PollPolicy | None = None,
) -> RefundOutcome:
    policy = policy or PollPolicy.from_settings()
    refund = get_refund(db, refund_id)

    if refund.status == REFUND_COMPLETED:
        raise ConflictError("Refund already completed", hint=f"txid={refund.external_tx_id}")
    if refund.status != REFUND_PENDING:
        raise ConflictError(f"Refund status is {refund.status}, expected pending")

    _claim_for_processing(db, refund_id)
    db.refresh(refund)

    try:
        payment_id = gateway.create_outbound_payment(
            amount=Decimal(str(refund.amount)),
            memo=refund.memo or f"Refund for order {refund.order_id}",
            metadata=load_metadata(refund),
            recipient_external_id=refund.user_external_id,
        )
    except GatewayError as exc:
        _mark_failed(db, refund, f"Pi API create error: {exc.message}")
        raise

    refund.external_payment_id = payment_id
    commit_or_raise(db)
    logger.info("Refund %s outbound payment created: %s", refund_id, payment_id)

    try:
        poll = wait_for_settlement(gateway, payment_id, policy)
    except GatewayError as exc:
        _mark_failed(db, refund, f"Pi API status error: {exc.message}")
        raise

    if poll.outcome is PollOutcome.CANCELLED:
        _mark_failed(db, refund, GATEWAY_CANCELLED_MESSAGE)
        raise GatewayError(GATEWAY_CANCELLED_MESSAGE)

    if poll.outcome is PollOutcome.TIMED_OUT:
        logger.warning("Refund %s still processing after %s polls", refund_id, poll.attempts)
        return RefundOutcome(
            refund_id=refund_id,
            status=REFUND_PROCESSING,
            payment_id=payment_id,
            message="Payment created but not confirmed yet. Check status in a few moments.",
        )

    txid = poll.status.txid
    if not poll.status.completed:
        try:
            gateway.complete_payment(payment_id, txid)
        except GatewayError as exc:
            # the transaction is on chain; the sweep completes it on the gateway later
            logger.warning("Refund %s: completing payment %s failed: %s", refund_id, payment_id, exc.message)

    _mark_completed(db, refund, txid)
    return RefundOutcome(
        refund_id=refund_id,
        status=REFUND_COMPLETED,
        payment_id=payment_id,
        txid=txid,
        message="Refund processed and completed successfully",
    )


def _release_outbound_payment(gateway: PiGatewayClient, refund: Refund) -> None:
    """Cancel the refund's outbound payment unless it already reached the chain."""
    payment_id = refund.external_payment_id
    status = gateway.get_payment_status(payment_id)
    if status.txid:
        raise ConflictError(
            f"Refund {refund.refund_id} payment {payment_id} has a blockchain transaction",
            hint="Run /refund/cleanup to complete it instead of cancelling",
        )
    if not status.cancelled:
        gateway.cancel_payment(payment_id)
        logger.info("Refund %s: outbound payment %s cancelled on gateway", refund.refund_id, payment_id)


def cancel_refund(db: Session, gateway: PiGatewayClient, refund_id: str, reason: str | None = None) -> Refund:
    """
    Cancel a pending or failed refund, or a processing one that never got an outbound payment.

    An outbound payment that already exists is cancelled on the gateway first, so the order
    cannot be refunded twice.
    """
    refund = get_refund(db, refund_id)
    stranded = refund.status == REFUND_PROCESSING and not refund.external_payment_id
    if refund.status not in (REFUND_PENDING, REFUND_FAILED) and not stranded:
        raise ConflictError(
            f"Refund status is {refund.status}; only pending, failed or unsent processing refunds can be cancelled"
        )
    if refund.external_payment_id:
        _release_outbound_payment(gateway, refund)
    refund.status = REFUND_CANCELLED
    if reason:
        refund.error_message = reason
    commit_or_raise(db)
    logger.info("Refund %s cancelled", refund_id)
    return refund


def get_refund_status(db: Session, refund_id: str) -> tuple[Refund, Order | None]:
    row = (
        db.query(Refund, Order)
        .outerjoin(Order, Refund.order_id == Order.order_id)
        .filter(Refund.refund_id == refund_id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Refund {refund_id} not found")
    return row[0], row[1]


def list_refunds(
    db: Session,
    status: str | None = "all",
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[tuple[Refund, Order | None]], int]:
    status = (status or "all").strip().lower()
    if status != "all" and status not in REFUND_STATUSES:
        raise ValidationError(f"Unknown refund status: {status}")
    limit = max(1, min(int(limit), MAX_REFUND_LIST_LIMIT))
    offset = max(0, int(offset))

    query = db.query(Refund, Order).outerjoin(Order, Refund.order_id == Order.order_id)
    count_query = db.query(func.count(Refund.id))
    if status != "all":
        query = query.filter(Refund.status == status)
        count_query = count_query.filter(Refund.status == status)

    rows = query.order_by(Refund.created_at.desc(), Refund.id.desc()).offset(offset).limit(limit).all()
    total = count_query.scalar() or 0
    return [(refund, order) for refund, order in rows], total


def _complete_refund_for_payment(db: Session, payment_id: str, txid: str) -> None:
    refund = db.query(Refund).filter(Refund.external_payment_id == payment_id).first()
    if refund is not None and refund.status != REFUND_COMPLETED:
        _mark_completed(db, refund, txid)


def _cancel_refund_for_payment(db: Session, payment_id: str) -> None:
    refund = db.query(Refund).filter(Refund.external_payment_id == payment_id).first()
    if refund is not None and refund.status not in (REFUND_COMPLETED, REFUND_CANCELLED):
        refund.status = REFUND_CANCELLED
        refund.error_message = SWEEP_CANCELLED_MESSAGE
        commit_or_raise(db)
        logger.info("Refund %s cancelled by sweep", refund.refund_id)


def sweep_incomplete_payments(db: Session, gateway: PiGatewayClient) -> SweepReport:
    """
    Reconcile outbound payments the gateway still considers incomplete.

    Payments with an on-chain transaction are completed, payments without one are
    cancelled. A failure on one payment is recorded and the sweep moves on.
    """
    payments = gateway.list_incomplete_outbound_payments()
    report = SweepReport(total_incomplete=len(payments))
    logger.info("Sweep found %s incomplete outbound payments", len(payments))

    for payment in payments:
        payment_id = payment.payment_id
        if payment.txid and payment.completed:
            report.results.append(SweepResult(payment_id, "skipped", True, txid=payment.txid, reason="already completed"))
            continue

        action = "complete" if payment.txid else "cancel"
        try:
            if payment.txid:
                gateway.complete_payment(payment_id, payment.txid)
                _complete_refund_for_payment(db, payment_id, payment.txid)
                report.results.append(SweepResult(payment_id, "completed", True, txid=payment.txid))
            else:
                gateway.cancel_payment(payment_id)
                _cancel_refund_for_payment(db, payment_id)
                report.results.append(SweepResult(payment_id, "cancelled", True, reason="No blockchain transaction"))
        except AppError as exc:
            logger.warning("Sweep could not %s payment %s: %s", action, payment_id, exc.message)
            report.results.append(SweepResult(payment_id, f"{action}_failed", False, error=exc.message))

    return report
