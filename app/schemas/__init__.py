from app.schemas.exchange_rate import ExchangeRateAdminRequest, ExchangeRateResponse
from app.schemas.orders import OrderCreateRequest, OrderCreateResponse, OrderResponse, OrderUpdateRequest
from app.schemas.payments import ApproveRequest, CancelRequest, CompleteRequest
from app.schemas.refunds import RefundCreateRequest, RefundProcessRequest

__all__ = [
    "ApproveRequest",
    "CancelRequest",
    "CompleteRequest",
    "ExchangeRateAdminRequest",
    "ExchangeRateResponse",
    "OrderCreateRequest",
    "OrderCreateResponse",
    "OrderResponse",
    "OrderUpdateRequest",
    "RefundCreateRequest",
    "RefundProcessRequest",
]
