from decimal import Decimal

from pydantic import BaseModel

from app.schemas.common import MoneyModel


class OrderCreateRequest(BaseModel):
    order_id: str | None = None
    customer_name: str | None = None
    customer_address: str | None = None
    postcode: str | None = None
    region: str | None = None
    country: str | None = None
    phone: str | None = None
    product_name: str | None = None
    quantity: int | None = None
    total_amount: Decimal | None = None
    shipping_weight: Decimal | None = None
    shipping_method: str | None = None
    shipping_cost: Decimal | None = None
    delivery_eta: str | None = None
    payment_method: str | None = None
    order_status: str | None = None
    courier_name: str | None = None
    tracking_link: str | None = None
    user_external_id: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order_id": "ORD1",
                    "customer_name": "Aina",
                    "customer_address": "12 Jalan Gaya",
                    "postcode": "88000",
                    "region": "Sabah",
                    "phone": "60123456789",
                    "product_name": "Tenom Coffee 500g",
                    "quantity": 2,
                    "total_amount": 100,
                    "payment_method": "Pi Network",
                    "user_external_id": "pi-user-uid",
                }
            ]
        }
    }


class OrderCreateResponse(BaseModel):
    success: bool = True
    order_id: str


class OrderUpdateRequest(BaseModel):
    order_status: str | None = None
    courier_name: str | None = None
    tracking_link: str | None = None
    shipping_method: str | None = None
    shipping_cost: Decimal | None = None
    delivery_eta: str | None = None
    payment_method: str | None = None
    external_payment_id: str | None = None
    external_tx_id: str | None = None


class OrderResponse(MoneyModel):
    order_id: str
    customer_name: str
    customer_address: str | None = None
    postcode: str | None = None
    region: str | None = None
    country: str | None = None
    phone: str | None = None
    product_name: str
    quantity: int
    total_amount: Decimal
    shipping_weight: Decimal | None = None
    shipping_method: str | None = None
    shipping_cost: Decimal | None = None
    delivery_eta: str | None = None
    payment_method: str | None = None
    order_status: str
    courier_name: str | None = None
    tracking_link: str | None = None
    external_payment_id: str | None = None
    external_tx_id: str | None = None
    user_external_id: str | None = None
    has_refund: bool = False
    refund_reason: str | None = None
    refunded_at: str | None = None
    created_at: str | None = None
