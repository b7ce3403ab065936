"""checkout schema

Revision ID: 20261019_01
Revises:
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def _column_exists(inspector: sa.Inspector, table_name: str, column_name: str) -> bool:
    return any(column["name"] == column_name for column in inspector.get_columns(table_name))


def _ensure_catalog_tables(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("display_name", sa.String(length=255), nullable=True),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="customer"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_users_id", "users", ["id"], unique=False)
        op.create_index("ix_users_email", "users", ["email"], unique=True)
    elif not _column_exists(inspector, "users", "role"):
        op.add_column(
            "users",
            sa.Column("role", sa.String(length=32), nullable=False, server_default="customer"),
        )

    if not _table_exists(inspector, "products"):
        op.create_table(
            "products",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("title", sa.String(length=255), nullable=False),
            sa.Column("shop_owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("selling_price", sa.Numeric(12, 2), nullable=False),
            sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_products_id", "products", ["id"], unique=False)
        op.create_index("ix_products_shop_owner_id", "products", ["shop_owner_id"], unique=False)


def _ensure_checkout_tables(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "pending_orders"):
        op.create_table(
            "pending_orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("order_number", sa.String(length=64), nullable=False, unique=True),
            sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("delivery_address", sa.JSON(), nullable=False),
            sa.Column("items", sa.JSON(), nullable=False),
            sa.Column("razorpay_order_id", sa.String(length=255), nullable=False),
            sa.Column("checkout_mode", sa.String(length=32), nullable=False, server_default="payment_link"),
            sa.Column("price_breakdown", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_pending_orders_id", "pending_orders", ["id"], unique=False)
        op.create_index("ix_pending_orders_user_id", "pending_orders", ["user_id"], unique=False)
        op.create_index(
            "ix_pending_orders_razorpay_order_id",
            "pending_orders",
            ["razorpay_order_id"],
            unique=True,
        )

    if not _table_exists(inspector, "orders"):
        op.create_table(
            "orders",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("order_number", sa.String(length=255), nullable=False),
            sa.Column("checkout_number", sa.String(length=64), nullable=True),
            sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=50), nullable=False, server_default="confirmed"),
            sa.Column("payment_status", sa.String(length=50), nullable=False, server_default="completed"),
            sa.Column("razorpay_order_id", sa.String(length=255), nullable=False),
            sa.Column("razorpay_payment_id", sa.String(length=255), nullable=False, unique=True),
            sa.Column("delivery_address", sa.JSON(), nullable=False),
            sa.Column("items", sa.JSON(), nullable=False),
            sa.Column("price_breakdown", sa.JSON(), nullable=True),
            sa.Column("admin_notes", sa.Text(), nullable=True),
            sa.Column("needs_reconciliation", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("reconciliation_notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_orders_id", "orders", ["id"], unique=False)
        op.create_index("ix_orders_user_id", "orders", ["user_id"], unique=False)
        op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
        op.create_index("ix_orders_razorpay_order_id", "orders", ["razorpay_order_id"], unique=False)
    else:
        # Orders created before reconciliation flags existed.
        if not _column_exists(inspector, "orders", "checkout_number"):
            op.add_column("orders", sa.Column("checkout_number", sa.String(length=64), nullable=True))
        if not _column_exists(inspector, "orders", "needs_reconciliation"):
            op.add_column(
                "orders",
                sa.Column("needs_reconciliation", sa.Boolean(), nullable=False, server_default=sa.false()),
            )
        if not _column_exists(inspector, "orders", "reconciliation_notes"):
            op.add_column("orders", sa.Column("reconciliation_notes", sa.Text(), nullable=True))


def _ensure_fulfilment_tables(inspector: sa.Inspector) -> None:
    if not _table_exists(inspector, "order_items"):
        op.create_table(
            "order_items",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
            sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
            sa.Column("shop_owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("price", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=50), nullable=False, server_default="pending"),
            sa.Column("dispatch_requested_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_order_items_id", "order_items", ["id"], unique=False)
        op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)
        op.create_index("ix_order_items_shop_owner_id", "order_items", ["shop_owner_id"], unique=False)

    if not _table_exists(inspector, "payout_requests"):
        op.create_table(
            "payout_requests",
            sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
            sa.Column("shop_owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("order_item_id", sa.Integer(), sa.ForeignKey("order_items.id"), nullable=False, unique=True),
            sa.Column("amount", sa.Numeric(12, 2), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
            sa.Column("requested_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        )
        op.create_index("ix_payout_requests_id", "payout_requests", ["id"], unique=False)
        op.create_index("ix_payout_requests_shop_owner_id", "payout_requests", ["shop_owner_id"], unique=False)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    _ensure_catalog_tables(inspector)
    inspector = sa.inspect(bind)
    _ensure_checkout_tables(inspector)
    inspector = sa.inspect(bind)
    _ensure_fulfilment_tables(inspector)


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in ("payout_requests", "order_items", "orders", "pending_orders", "products"):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)

    inspector = sa.inspect(bind)
    if _table_exists(inspector, "users") and _column_exists(inspector, "users", "role"):
        op.drop_column("users", "role")
