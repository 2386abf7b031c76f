"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


class GUID(sa.TypeDecorator):
    impl = sa.CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(sa.CHAR(36))


def upgrade() -> None:
    op.create_table(
        "app_settings",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("slug", sa.String(length=100), nullable=False, unique=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "products",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("stock", sa.Integer(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("discount_active", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_percentage", sa.Float(), nullable=True),
        sa.Column("discount_label", sa.String(length=100), nullable=True),
        sa.Column("discount_end_date", sa.DateTime(), nullable=True),
        sa.Column("last_sale_reference_id", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_products_sku", "products", ["sku"], unique=False)
    op.create_table(
        "service_items",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_service_items_code", "service_items", ["code"], unique=False)
    op.create_table(
        "cash_registers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("business_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("opening_float", sa.Float(), nullable=False),
        sa.Column("denominations", sa.JSON(), nullable=True),
        sa.Column("opened_by", sa.String(length=255), nullable=True),
        sa.Column("opened_at", sa.DateTime(), nullable=False),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_cash_registers_business_date", "cash_registers", ["business_date"], unique=False)
    op.create_index("ix_cash_registers_date_status", "cash_registers", ["business_date", "status"], unique=False)
    op.create_table(
        "customers",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=50), nullable=True),
        sa.Column("loyalty_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("loyalty_tier", sa.String(length=20), nullable=False, server_default="bronze"),
        sa.Column("total_spent", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_sale_reference_id", GUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "work_orders",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("order_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("customer_id", GUID(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False, server_default="intake"),
        sa.Column("total", sa.Float(), nullable=False, server_default="0"),
        sa.Column("order_items", sa.JSON(), nullable=True),
        sa.Column("total_paid", sa.Float(), nullable=False, server_default="0"),
        sa.Column("balance_due", sa.Float(), nullable=True),
        sa.Column("paid", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_payment_reference_id", GUID(), nullable=True),
        sa.Column("device_brand", sa.String(length=100), nullable=True),
        sa.Column("device_model", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_table(
        "work_order_events",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("order_id", GUID(), sa.ForeignKey("work_orders.id"), nullable=False),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reference_id", GUID(), nullable=True),
        sa.Column("user_name", sa.String(length=255), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("order_id", "event_type", "reference_id", name="uq_work_order_event_reference"),
    )
    op.create_index("ix_work_order_events_order_id", "work_order_events", ["order_id"], unique=False)
    op.create_table(
        "sales",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_number", sa.String(length=50), nullable=False, unique=True),
        sa.Column("customer_id", GUID(), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=True),
        sa.Column("order_id", GUID(), nullable=True),
        sa.Column("subtotal", sa.Float(), nullable=False),
        sa.Column("discount_type", sa.String(length=20), nullable=False, server_default="none"),
        sa.Column("discount_value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Float(), nullable=False),
        sa.Column("tax_amount", sa.Float(), nullable=False),
        sa.Column("total", sa.Float(), nullable=False),
        sa.Column("amount_paid", sa.Float(), nullable=False),
        sa.Column("amount_tendered", sa.Float(), nullable=False),
        sa.Column("change_due", sa.Float(), nullable=False, server_default="0"),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("payment_details", sa.JSON(), nullable=True),
        sa.Column("payment_mode", sa.String(length=20), nullable=False, server_default="full"),
        sa.Column("points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("employee", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_sales_customer_id", "sales", ["customer_id"], unique=False)
    op.create_index("ix_sales_order_id", "sales", ["order_id"], unique=False)
    op.create_table(
        "sale_lines",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("sale_id", GUID(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("item_id", sa.String(length=64), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("original_unit_price", sa.Float(), nullable=True),
        sa.Column("discount_label", sa.String(length=100), nullable=True),
        sa.Column("line_total", sa.Float(), nullable=False),
    )
    op.create_index("ix_sale_lines_sale_id", "sale_lines", ["sale_id"], unique=False)
    op.create_table(
        "ledger_transactions",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("payment_method", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=50), nullable=True),
        sa.Column("order_id", GUID(), nullable=True),
        sa.Column("reference_id", GUID(), nullable=False),
        sa.Column("recorded_by", sa.String(length=255), nullable=True),
        sa.Column("payment_details", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("type", "reference_id", name="uq_ledger_type_reference"),
    )
    op.create_index("ix_ledger_transactions_order_id", "ledger_transactions", ["order_id"], unique=False)
    op.create_index("ix_ledger_transactions_reference", "ledger_transactions", ["reference_id"], unique=False)
    op.create_table(
        "inventory_movements",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("product_id", GUID(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("movement_type", sa.String(length=20), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(length=20), nullable=False),
        sa.Column("reference_id", GUID(), nullable=False),
        sa.Column("reference_number", sa.String(length=50), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "reference_type", "reference_id", "product_id", name="uq_inventory_movement_reference"
        ),
    )
    op.create_index("ix_inventory_movements_product_id", "inventory_movements", ["product_id"], unique=False)
    op.create_table(
        "loyalty_entries",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("customer_id", GUID(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("reference_id", GUID(), nullable=False, unique=True),
        sa.Column("points_delta", sa.Integer(), nullable=False),
        sa.Column("points_after", sa.Integer(), nullable=False),
        sa.Column("tier_before", sa.String(length=20), nullable=False),
        sa.Column("tier_after", sa.String(length=20), nullable=False),
        sa.Column("lifetime_spend_after", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_loyalty_entries_customer_id", "loyalty_entries", ["customer_id"], unique=False)
    op.create_table(
        "idempotency_records",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("idempotency_key", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=20), nullable=False, server_default="in_progress"),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("response_body", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("endpoint", "method", "idempotency_key", name="uq_idempotency"),
    )


def downgrade() -> None:
    op.drop_table("idempotency_records")
    op.drop_index("ix_loyalty_entries_customer_id", table_name="loyalty_entries")
    op.drop_table("loyalty_entries")
    op.drop_index("ix_inventory_movements_product_id", table_name="inventory_movements")
    op.drop_table("inventory_movements")
    op.drop_index("ix_ledger_transactions_reference", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_order_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_sale_lines_sale_id", table_name="sale_lines")
    op.drop_table("sale_lines")
    op.drop_index("ix_sales_order_id", table_name="sales")
    op.drop_index("ix_sales_customer_id", table_name="sales")
    op.drop_table("sales")
    op.drop_index("ix_work_order_events_order_id", table_name="work_order_events")
    op.drop_table("work_order_events")
    op.drop_table("work_orders")
    op.drop_table("customers")
    op.drop_index("ix_cash_registers_date_status", table_name="cash_registers")
    op.drop_index("ix_cash_registers_business_date", table_name="cash_registers")
    op.drop_table("cash_registers")
    op.drop_index("ix_service_items_code", table_name="service_items")
    op.drop_table("service_items")
    op.drop_index("ix_products_sku", table_name="products")
    op.drop_table("products")
    op.drop_table("app_settings")
