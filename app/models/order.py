from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from app.models.database import Base

ORDER_STATUS_PENDING = "Pending Payment"
ORDER_STATUS_PAID = "Paid"
ORDER_STATUS_CANCELLED = "Cancelled"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(64), unique=True, index=True, nullable=False)
    customer_name = Column(String(255), nullable=False)
    customer_address = Column(Text, nullable=True)
    postcode = Column(String(32), nullable=True)
    region = Column(String(128), nullable=True)
    country = Column(String(128), nullable=False, default="Malaysia")
    phone = Column(String(64), nullable=True, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    shipping_weight = Column(Numeric(10, 3), nullable=True)
    shipping_method = Column(String(128), nullable=True)
    shipping_cost = Column(Numeric(12, 2), nullable=True)
    delivery_eta = Column(String(64), nullable=True)
    payment_method = Column(String(64), nullable=True)
    order_status = Column(String(64), nullable=False, default=ORDER_STATUS_PENDING)
    courier_name = Column(String(128), nullable=True)
    tracking_link = Column(String(512), nullable=True)
    external_payment_id = Column(String(255), nullable=True, index=True)
    external_tx_id = Column(String(255), nullable=True)
    user_external_id = Column(String(255), nullable=True)
    has_refund = Column(Boolean, nullable=False, default=False)
    refund_reason = Column(Text, nullable=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
