from decimal import Decimal

from pydantic import BaseModel, field_serializer


class MoneyModel(BaseModel):
    """Serializes Decimal amounts as JSON numbers."""

    @field_serializer(
        "total_amount",
        "shipping_cost",
        "shipping_weight",
        "price",
        "weight",
        "rate",
        "old_rate",
        "new_rate",
        "pi_per_local",
        "amount_pi",
        "amount_rm",
        "exchange_rate",
        "order_total",
        check_fields=False,
    )
    def serialize_money(self, value: Decimal | None) -> float | None:
        if value is None:
            return None
        return float(value)


class SuccessResponse(BaseModel):
    success: bool = True
    message: str | None = None
