from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.sql import func

from app.models.database import Base

REFUND_PENDING = "pending"
REFUND_PROCESSING = "processing"
REFUND_COMPLETED = "completed"
REFUND_FAILED = "failed"
REFUND_CANCELLED = "cancelled"

REFUND_STATUSES = (REFUND_PENDING, REFUND_PROCESSING, REFUND_COMPLETED, REFUND_FAILED, REFUND_CANCELLED)

_non_terminal_clause = text("status IN ('pending', 'processing')")


class Refund(Base):
    __tablename__ = "refunds"
    __table_args__ = (
        # one in-flight refund per order
        Index(
            "uq_refunds_order_in_flight",
            "order_id",
            unique=True,
            sqlite_where=_non_terminal_clause,
            postgresql_where=_non_terminal_clause,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    refund_id = Column(String(64), unique=True, index=True, nullable=False)
    order_id = Column(String(64), ForeignKey("orders.order_id"), nullable=False, index=True)
    user_external_id = Column(String(255), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    amount_local = Column(Numeric(12, 2), nullable=False)
    exchange_rate = Column(Numeric(20, 8), nullable=False)
    memo = Column(Text, nullable=True)
    metadata_json = Column("metadata", Text, nullable=True)
    external_payment_id = Column(String(255), nullable=True, index=True)
    external_tx_id = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default=REFUND_PENDING, index=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    processed_by = Column(String(128), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    initiated_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
