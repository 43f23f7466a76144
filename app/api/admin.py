import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.dependencies import AdminToken
from app.errors import ValidationError
from app.models import get_db
from app.schemas.exchange_rate import (
    ExchangeRateAdminRequest,
    ExchangeRateHistoryItem,
    ExchangeRateHistoryResponse,
    ExchangeRateUpdateResponse,
)
from app.schemas.notices import Notice, NoticeResponse, NoticeUpdateRequest
from app.schemas.products import ProductResponse, ProductUpdateRequest, ProductUpdateResponse
from app.services import exchange_rates, notices, product_store
from app.services.time_utils import isoformat_or_none

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/exchange-rate",
    response_model=ExchangeRateUpdateResponse | ExchangeRateHistoryResponse,
    summary="Update the exchange rate or read its history",
)
def manage_exchange_rate(
    body: ExchangeRateAdminRequest,
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
):
    """`{"action": "update", "rate": 3.5}` appends a new rate; `{"action": "history", "limit": 10}` lists past rates."""
    if body.action == "history":
        rows = exchange_rates.list_history(db, body.limit)
        return ExchangeRateHistoryResponse(
            history=[
                ExchangeRateHistoryItem(
                    id=row.id,
                    currency=row.currency,
                    rate=row.rate,
                    pi_per_local=exchange_rates.pi_per_local(row.rate),
                    updated_at=isoformat_or_none(row.updated_at),
                )
                for row in rows
            ]
        )

    if body.rate is None:
        raise ValidationError("Invalid rate. Must be a positive number.")
    old_rate = exchange_rates.set_rate(db, body.rate)
    logger.info("Admin changed exchange rate from %s to %s", old_rate, body.rate)
    return ExchangeRateUpdateResponse(
        old_rate=old_rate,
        new_rate=body.rate,
        message=f"Exchange rate updated to {body.rate} MYR per Pi",
    )


@router.put(
    "/products/{product_id}",
    response_model=ProductUpdateResponse,
    summary="Update product price, stock or details",
)
def update_product(
    product_id: int,
    body: ProductUpdateRequest,
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
):
    product = product_store.update_product(db, product_id, body.model_dump(exclude_unset=True))
    return ProductUpdateResponse(product=ProductResponse.model_validate(product))


@router.post(
    "/maintenance-notice",
    response_model=NoticeResponse,
    summary="Update the maintenance notice",
)
def update_notice(
    body: NoticeUpdateRequest,
    _admin: AdminToken,
    db: Annotated[Session, Depends(get_db)],
):
    notice = notices.set_notice(db, body.enabled, body.type, body.title, body.message, body.icon)
    return NoticeResponse(message="Maintenance notice updated successfully", notice=Notice(**notice))
