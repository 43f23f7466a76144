from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models import get_db
from app.schemas.exchange_rate import ExchangeRateResponse
from app.services import exchange_rates
from app.services.time_utils import isoformat_or_none

router = APIRouter()


@router.get(
    "",
    response_model=ExchangeRateResponse,
    summary="Current Pi exchange rate",
)
def current_rate(
    db: Annotated[Session, Depends(get_db)],
):
    """Always answers 200; without a configured rate it returns 1.0 flagged as fallback."""
    current = exchange_rates.get_current_rate(db)
    return ExchangeRateResponse(
        success=not current.fallback,
        rate=current.rate,
        updated_at=isoformat_or_none(current.updated_at),
        fallback=current.fallback,
    )
