from decimal import Decimal
from typing import Literal

from pydantic import BaseModel

from app.schemas.common import MoneyModel


class ExchangeRateResponse(MoneyModel):
    success: bool
    rate: Decimal
    currency: str = "PI"
    updated_at: str | None = None
    fallback: bool = False


class ExchangeRateAdminRequest(BaseModel):
    action: Literal["update", "history"] = "update"
    rate: Decimal | None = None
    limit: int = 10


class ExchangeRateUpdateResponse(MoneyModel):
    success: bool = True
    old_rate: Decimal | None = None
    new_rate: Decimal
    message: str


class ExchangeRateHistoryItem(MoneyModel):
    id: int
    currency: str
    rate: Decimal
    pi_per_local: Decimal
    updated_at: str | None = None


class ExchangeRateHistoryResponse(BaseModel):
    success: bool = True
    history: list[ExchangeRateHistoryItem]
