from pydantic import BaseModel, Field

from app.schemas.orders import OrderResponse


class ApproveRequest(BaseModel):
    payment_id: str = Field(min_length=1)
    order_id: str = Field(min_length=1)


class CompleteRequest(BaseModel):
    payment_id: str = Field(min_length=1)
    txid: str = Field(min_length=1)
    order_id: str = Field(min_length=1)


class CancelRequest(BaseModel):
    payment_id: str = Field(min_length=1)
    order_id: str | None = None


class ApproveResponse(BaseModel):
    success: bool = True
    message: str
    payment_id: str
    order_id: str


class CompleteResponse(BaseModel):
    success: bool = True
    message: str = "Payment completed successfully"
    order: OrderResponse


class CancelResponse(BaseModel):
    success: bool = True
    message: str
    payment_id: str
    order_id: str | None = None
    found_by: str
