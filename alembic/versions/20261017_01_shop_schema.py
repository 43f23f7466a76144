"""shop schema: orders, products, exchange rates, refunds, kv entries

Revision ID: 20261017_01
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261017_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NON_TERMINAL_REFUND = sa.text("status IN ('pending', 'processing')")


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    inspector = sa.inspect(op.get_bind())

    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.String(length=64), nullable=False),
            sa.Column("customer_name", sa.String(length=255), nullable=False),
            sa.Column("customer_address", sa.Text(), nullable=True),
            sa.Column("postcode", sa.String(length=32), nullable=True),
            sa.Column("region", sa.String(length=128), nullable=True),
            sa.Column("country", sa.String(length=128), nullable=False),
            sa.Column("phone", sa.String(length=64), nullable=True),
            sa.Column("product_name", sa.String(length=255), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("shipping_weight", sa.Numeric(10, 3), nullable=True),
            sa.Column("shipping_method", sa.String(length=128), nullable=True),
            sa.Column("shipping_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("delivery_eta", sa.String(length=64), nullable=True),
            sa.Column("payment_method", sa.String(length=64), nullable=True),
            sa.Column("order_status", sa.String(length=64), nullable=False),
            sa.Column("courier_name", sa.String(length=128), nullable=True),
            sa.Column("tracking_link", sa.String(length=512), nullable=True),
            sa.Column("external_payment_id", sa.String(length=255), nullable=True),
            sa.Column("external_tx_id", sa.String(length=255), nullable=True),
            sa.Column("user_external_id", sa.String(length=255), nullable=True),
            sa.Column("has_refund", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("refund_reason", sa.Text(), nullable=True),
            sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_order_id", "orders", ["order_id"], unique=True)
        op.create_index("ix_orders_phone", "orders", ["phone"], unique=False)
        op.create_index("ix_orders_external_payment_id", "orders", ["external_payment_id"], unique=False)

    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("weight", sa.Numeric(10, 3), nullable=False, server_default="1"),
            sa.Column("image_url", sa.String(length=512), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_products_id", "products", ["id"], unique=False)
        op.create_index("ix_products_name", "products", ["name"], unique=False)

    if not _table_exists(inspector, "exchange_rates"):
        op.create_table(
            "exchange_rates",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("currency", sa.String(length=16), nullable=False),
            sa.Column("rate", sa.Numeric(20, 8), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.CheckConstraint("rate > 0", name="ck_exchange_rates_rate_positive"),
        )
        op.create_index("ix_exchange_rates_id", "exchange_rates", ["id"], unique=False)
        op.create_index("ix_exchange_rates_currency", "exchange_rates", ["currency"], unique=False)

    if not _table_exists(inspector, "refunds"):
        op.create_table(
            "refunds",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("refund_id", sa.String(length=64), nullable=False),
            sa.Column("order_id", sa.String(length=64), sa.ForeignKey("orders.order_id"), nullable=False),
            sa.Column("user_external_id", sa.String(length=255), nullable=False),
            sa.Column("amount", sa.Numeric(20, 8), nullable=False),
            sa.Column("amount_local", sa.Numeric(12, 2), nullable=False),
            sa.Column("exchange_rate", sa.Numeric(20, 8), nullable=False),
            sa.Column("memo", sa.Text(), nullable=True),
            sa.Column("metadata", sa.Text(), nullable=True),
            sa.Column("external_payment_id", sa.String(length=255), nullable=True),
            sa.Column("external_tx_id", sa.String(length=255), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("processed_by", sa.String(length=128), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("initiated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        )
        op.create_index("ix_refunds_id", "refunds", ["id"], unique=False)
        op.create_index("ix_refunds_refund_id", "refunds", ["refund_id"], unique=True)
        op.create_index("ix_refunds_order_id", "refunds", ["order_id"], unique=False)
        op.create_index("ix_refunds_status", "refunds", ["status"], unique=False)
        op.create_index("ix_refunds_external_payment_id", "refunds", ["external_payment_id"], unique=False)
        op.create_index(
            "uq_refunds_order_in_flight",
            "refunds",
            ["order_id"],
            unique=True,
            postgresql_where=NON_TERMINAL_REFUND,
            sqlite_where=NON_TERMINAL_REFUND,
        )

    if not _table_exists(inspector, "kv_entries"):
        op.create_table(
            "kv_entries",
            sa.Column("key", sa.String(length=128), primary_key=True, nullable=False),
            sa.Column("value", sa.Text(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )


def downgrade() -> None:
    op.drop_table("kv_entries")
    op.drop_index("uq_refunds_order_in_flight", table_name="refunds")
    op.drop_table("refunds")
    op.drop_table("exchange_rates")
    op.drop_table("products")
    op.drop_table("orders")
