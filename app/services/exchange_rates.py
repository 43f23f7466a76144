import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models import ExchangeRate, commit_or_raise
from app.models.exchange_rate import DEFAULT_RATE_CURRENCY
from app.services.order_store import clamp_limit
from app.services.time_utils import utcnow

logger = logging.getLogger(__name__)

FALLBACK_RATE = Decimal("1.0")
PI_PRECISION = Decimal("0.00000001")


@dataclass(frozen=True)
class CurrentRate:
    rate: Decimal
    updated_at: datetime | None
    fallback: bool = False


def _latest_query(db: Session):
    return (
        db.query(ExchangeRate)
        .filter(ExchangeRate.currency == DEFAULT_RATE_CURRENCY)
        .order_by(ExchangeRate.updated_at.desc(), ExchangeRate.id.desc())
    )


def pi_per_local(rate: Decimal) -> Decimal:
    return (Decimal("1") / Decimal(str(rate))).quantize(PI_PRECISION, rounding=ROUND_HALF_UP)


def get_current_rate(db: Session) -> CurrentRate:
    """Latest configured rate, or 1.0 flagged as fallback when none can be read."""
    try:
        row = _latest_query(db).first()
    except SQLAlchemyError:
        logger.exception("Failed to load exchange rate, using fallback %s", FALLBACK_RATE)
        db.rollback()
        return CurrentRate(rate=FALLBACK_RATE, updated_at=None, fallback=True)
    if row is None:
        return CurrentRate(rate=FALLBACK_RATE, updated_at=None, fallback=True)
    return CurrentRate(rate=Decimal(str(row.rate)), updated_at=row.updated_at)


def set_rate(db: Session, new_rate) -> Decimal | None:
    """Append a new rate and return the one it replaces (None on first set)."""
    try:
        rate = Decimal(str(new_rate))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Invalid rate. Must be a positive number.") from exc
    if not rate.is_finite() or rate <= 0:
        raise ValidationError("Invalid rate. Must be a positive number.")

    previous = _latest_query(db).first()
    old_rate = Decimal(str(previous.rate)) if previous is not None else None

    db.add(ExchangeRate(currency=DEFAULT_RATE_CURRENCY, rate=rate, updated_at=utcnow()))
    commit_or_raise(db)
    logger.info("Exchange rate updated: %s -> %s", old_rate, rate)
    return old_rate


def list_history(db: Session, limit: int | None = 10) -> list[ExchangeRate]:
    return _latest_query(db).limit(clamp_limit(limit)).all()
