import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models import Product, commit_or_raise

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = ("price", "stock", "description", "image_url", "weight")


def list_products(db: Session) -> list[Product]:
    return db.query(Product).order_by(Product.created_at.desc(), Product.id.desc()).all()


def get_product(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def update_product(db: Session, product_id: int, partial: dict[str, Any]) -> Product:
    updates = {key: value for key, value in partial.items() if key in PRODUCT_MUTABLE_FIELDS and value is not None}
    if not updates:
        raise ValidationError("No update fields provided")

    for key in ("price", "weight"):
        if key in updates:
            try:
                updates[key] = Decimal(str(updates[key]))
            except (InvalidOperation, ValueError) as exc:
                raise ValidationError(f"{key} must be a number") from exc
            if updates[key] < 0:
                raise ValidationError(f"{key} must not be negative")
    if "stock" in updates and int(updates["stock"]) < 0:
        raise ValidationError("stock must not be negative")

    product = get_product(db, product_id)
    for key, value in updates.items():
        setattr(product, key, value)
    commit_or_raise(db)
    db.refresh(product)
    logger.info("Product %s updated: %s", product_id, ", ".join(sorted(updates)))
    return product
