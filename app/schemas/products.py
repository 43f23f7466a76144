from decimal import Decimal

from pydantic import BaseModel

from app.schemas.common import MoneyModel


class ProductResponse(MoneyModel):
    id: int
    name: str
    description: str | None = None
    price: Decimal
    stock: int
    weight: Decimal | None = None
    image_url: str | None = None

    model_config = {"from_attributes": True}


class ProductUpdateRequest(BaseModel):
    price: Decimal | None = None
    stock: int | None = None
    description: str | None = None
    image_url: str | None = None
    weight: Decimal | None = None


class ProductUpdateResponse(BaseModel):
    success: bool = True
    product: ProductResponse
