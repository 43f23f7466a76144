import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ValidationError
from app.models import Order, Product, commit_or_raise
from app.models.order import ORDER_STATUS_PENDING

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "Malaysia"
DEFAULT_SHIPPING_METHOD = "Standard Courier"
DEFAULT_PAYMENT_METHOD = "FPX"
DEFAULT_COURIER = "City-Link"
DEFAULT_DELIVERY_ETA = "1-4 days"
DEFAULT_LIST_LIMIT = 10
MAX_LIST_LIMIT = 100

REQUIRED_ORDER_FIELDS = ("order_id", "customer_name", "product_name")

ORDER_MUTABLE_FIELDS = (
    "order_status",
    "courier_name",
    "tracking_link",
    "shipping_method",
    "shipping_cost",
    "delivery_eta",
    "payment_method",
    "external_payment_id",
    "external_tx_id",
)


class FoundBy(str, Enum):
    ORDER_ID = "order_id"
    PAYMENT_ID = "payment_id"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class OrderLookup:
    found_by: FoundBy
    order: Order | None = None

    @property
    def found(self) -> bool:
        return self.order is not None


def _to_decimal(name: str, value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{name} must be a number") from exc


def clamp_limit(limit: int | None, default: int = DEFAULT_LIST_LIMIT) -> int:
    if limit is None:
        return default
    return max(1, min(int(limit), MAX_LIST_LIMIT))


def _resolve_shipping_weight(db: Session, product_name: str, quantity: int) -> Decimal:
    product = db.query(Product).filter(Product.name == product_name).first()
    if product is None or product.weight is None:
        return Decimal("1")
    return Decimal(str(product.weight)) * quantity


def create_order(db: Session, fields: dict[str, Any]) -> Order:
    """
    Insert a new order.

    Required: order_id, customer_name, product_name. Optional fields fall back to
    checkout defaults. A duplicate order_id is reported as ConflictError.
    """
    missing = [name for name in REQUIRED_ORDER_FIELDS if not str(fields.get(name) or "").strip()]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    try:
        quantity = int(fields.get("quantity") or 1)
    except (TypeError, ValueError) as exc:
        raise ValidationError("quantity must be an integer") from exc
    if quantity < 1:
        raise ValidationError("quantity must be at least 1")

    total_amount = _to_decimal("total_amount", fields.get("total_amount") or 0)
    if total_amount < 0:
        raise ValidationError("total_amount must not be negative")

    shipping_weight = fields.get("shipping_weight")
    if shipping_weight is None:
        shipping_weight = _resolve_shipping_weight(db, fields["product_name"], quantity)
    else:
        shipping_weight = _to_decimal("shipping_weight", shipping_weight)

    order = Order(
        order_id=str(fields["order_id"]).strip(),
        customer_name=fields["customer_name"],
        customer_address=fields.get("customer_address"),
        postcode=fields.get("postcode"),
        region=fields.get("region"),
        country=fields.get("country") or DEFAULT_COUNTRY,
        phone=fields.get("phone"),
        product_name=fields["product_name"],
        quantity=quantity,
        total_amount=total_amount,
        shipping_weight=shipping_weight,
        shipping_method=fields.get("shipping_method") or DEFAULT_SHIPPING_METHOD,
        shipping_cost=_to_decimal("shipping_cost", fields.get("shipping_cost") or 0),
        delivery_eta=fields.get("delivery_eta") or DEFAULT_DELIVERY_ETA,
        payment_method=fields.get("payment_method") or DEFAULT_PAYMENT_METHOD,
        order_status=fields.get("order_status") or ORDER_STATUS_PENDING,
        courier_name=fields.get("courier_name") or DEFAULT_COURIER,
        tracking_link=fields.get("tracking_link") or "",
        user_external_id=fields.get("user_external_id"),
        has_refund=False,
    )
    db.add(order)
    commit_or_raise(db, conflict_message=f"Order {order.order_id} already exists")
    db.refresh(order)
    logger.info("Order %s created for %s", order.order_id, order.customer_name)
    return order


def get_order(db: Session, order_id: str) -> Order:
    order = db.query(Order).filter(Order.order_id == order_id).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    db: Session,
    phone: str | None = None,
    limit: int | None = DEFAULT_LIST_LIMIT,
    offset: int = 0,
) -> list[Order]:
    query = db.query(Order)
    if phone:
        query = query.filter(Order.phone == phone)
    return (
        query.order_by(Order.created_at.desc(), Order.id.desc())
        .offset(max(0, offset))
        .limit(clamp_limit(limit))
        .all()
    )


def update_order_fields(db: Session, order_id: str, partial: dict[str, Any]) -> Order:
    """Apply allow-listed fields; anything else in ``partial`` is ignored."""
    updates = {key: value for key, value in partial.items() if key in ORDER_MUTABLE_FIELDS}
    if not updates:
        raise ValidationError("No valid fields to update")

    order = get_order(db, order_id)
    if "shipping_cost" in updates and updates["shipping_cost"] is not None:
        updates["shipping_cost"] = _to_decimal("shipping_cost", updates["shipping_cost"])
    for key, value in updates.items():
        setattr(order, key, value)
    commit_or_raise(db)
    db.refresh(order)
    logger.info("Order %s updated: %s", order_id, ", ".join(sorted(updates)))
    return order


def find_order_for_payment(db: Session, payment_id: str, order_id: str | None = None) -> OrderLookup:
    """
    Locate the order a payment belongs to.

    The order id is tried first and only matches when the order has no payment
    attached or has this one; the attached payment id is the fallback.
    """
    if order_id:
        order = db.query(Order).filter(Order.order_id == order_id).first()
        if order is not None and order.external_payment_id in (None, payment_id):
            return OrderLookup(FoundBy.ORDER_ID, order)

    order = db.query(Order).filter(Order.external_payment_id == payment_id).first()
    if order is not None:
        return OrderLookup(FoundBy.PAYMENT_ID, order)
    return OrderLookup(FoundBy.NOT_FOUND)

