from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.models import get_db
from app.schemas.products import ProductResponse
from app.services import product_store

router = APIRouter()


@router.get(
    "",
    response_model=list[ProductResponse],
    summary="List products",
)
def list_products(
    db: Annotated[Session, Depends(get_db)],
):
    return [ProductResponse.model_validate(product) for product in product_store.list_products(db)]


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product",
)
def get_product(
    product_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    return ProductResponse.model_validate(product_store.get_product(db, product_id))
