from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from app.schemas.common import MoneyModel


class RefundCreateRequest(BaseModel):
    order_id: str = Field(min_length=1)
    amount_rm: Decimal
    reason: str = Field(min_length=1)
    admin_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"order_id": "ORD1", "amount_rm": 50, "reason": "Damaged item", "admin_id": "ops-1"}]
        }
    }


class RefundProcessRequest(BaseModel):
    refund_id: str = Field(min_length=1)


class RefundCancelRequest(BaseModel):
    refund_id: str = Field(min_length=1)
    reason: str | None = None


class RefundCreateResponse(MoneyModel):
    success: bool = True
    refund_id: str
    order_id: str
    amount_pi: Decimal
    amount_rm: Decimal
    exchange_rate: Decimal
    user_uid: str
    status: str


class RefundProcessResponse(BaseModel):
    success: bool = True
    refund_id: str
    status: str
    payment_identifier: str | None = None
    txid: str | None = None
    message: str


class RefundCancelResponse(BaseModel):
    success: bool = True
    refund_id: str
    status: str


class RefundOrderSummary(MoneyModel):
    customer_name: str | None = None
    product: str | None = None
    order_total: Decimal | None = None
    order_status: str | None = None
    phone: str | None = None


class RefundDetail(MoneyModel):
    refund_id: str
    order_id: str
    user_uid: str
    amount_pi: Decimal
    amount_rm: Decimal
    exchange_rate: Decimal
    memo: str | None = None
    metadata: dict[str, Any] = {}
    payment_identifier: str | None = None
    txid: str | None = None
    refund_status: str
    error_message: str | None = None
    retry_count: int = 0
    processed_by: str | None = None
    created_at: str | None = None
    initiated_at: str | None = None
    completed_at: str | None = None
    order: RefundOrderSummary


class RefundStatusResponse(BaseModel):
    success: bool = True
    refund: RefundDetail


class RefundListResponse(BaseModel):
    success: bool = True
    refunds: list[RefundDetail]
    count: int
    total: int
    limit: int
    offset: int
    filter: str


class SweepResponse(BaseModel):
    success: bool = True
    message: str
    results: list[dict[str, Any]]
    total_incomplete: int
