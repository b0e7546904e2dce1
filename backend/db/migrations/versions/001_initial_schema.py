"""
Initial schema - users, products, waybills, waybill_items, count_ledger

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Users
    op.create_table(
        "users",
        sa.Column("user_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("username", sa.String(100), nullable=False, unique=True),
        sa.Column("fullname", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default="User"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('Super Admin', 'Admin', 'User')", name="ck_user_role"),
    )

    # 2. Products
    op.create_table(
        "products",
        sa.Column("product_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("category_normalized", sa.String(100), nullable=False, server_default=""),
        sa.Column("product_name", sa.String(255), nullable=False, unique=True),
        sa.Column("product_name_normalized", sa.String(255), nullable=False, server_default=""),
        sa.Column("sku", sa.String(100)),
        sa.Column("barcode", sa.String(64)),
        sa.Column("price", sa.Float),
        sa.Column("stock", sa.Float),
        sa.Column("base_unit", sa.String(50)),
        sa.Column("conversion_factor", sa.Float),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "conversion_factor IS NULL OR conversion_factor >= 1", name="ck_product_conversion_factor"
        ),
    )
    op.create_index("ix_products_category_normalized", "products", ["category_normalized"])
    op.create_index("ix_products_name_normalized", "products", ["product_name_normalized"])

    # 3. Waybills
    op.create_table(
        "waybills",
        sa.Column("waybill_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("waybill_no", sa.String(100), nullable=False, unique=True),
        sa.Column("date", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("count", sa.Float, nullable=False),
        sa.Column("uom", sa.String(50), nullable=False),
        sa.Column("status", sa.String(10), nullable=False, server_default="OPEN"),
        sa.Column("closed_at", sa.DateTime, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("status IN ('OPEN', 'CLOSED')", name="ck_waybill_status"),
        sa.CheckConstraint("count >= 0", name="ck_waybill_count_positive"),
        sa.CheckConstraint(
            "(status = 'CLOSED' AND closed_at IS NOT NULL) OR (status = 'OPEN' AND closed_at IS NULL)",
            name="ck_waybill_closed_at",
        ),
    )
    op.create_index("ix_waybills_status", "waybills", ["status"])
    op.create_index("ix_waybills_closed_at", "waybills", ["closed_at"])

    # 4. Waybill items
    op.create_table(
        "waybill_items",
        sa.Column("item_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "waybill_id",
            UUID(as_uuid=True),
            sa.ForeignKey("waybills.waybill_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("incoming", sa.Float, nullable=False),
        sa.Column("uom_incoming", sa.String(50), nullable=False),
        sa.Column("actual_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("remark_actual", sa.Text, nullable=False, server_default=""),
        sa.Column("product_id", UUID(as_uuid=True), nullable=True),
        sa.Column("conversion_factor", sa.Float, nullable=False, server_default="1"),
        sa.CheckConstraint("incoming >= 0", name="ck_item_incoming_positive"),
        sa.CheckConstraint("actual_count >= 0", name="ck_item_actual_positive"),
        sa.CheckConstraint("conversion_factor >= 1", name="ck_item_conversion_factor"),
    )
    op.create_index("ix_waybill_items_waybill", "waybill_items", ["waybill_id", "position"])

    # 5. Count ledger (no FK: rows outlive their waybill)
    op.create_table(
        "count_ledger",
        sa.Column("entry_id", UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("waybill_id", UUID(as_uuid=True), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("waybill_no", sa.String(100), nullable=False),
        sa.Column("declared_count", sa.Float),
        sa.Column("uom", sa.String(50)),
        sa.Column("waybill_date", sa.DateTime),
        sa.Column("counts", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("total", sa.Integer, nullable=False, server_default="0"),
        sa.Column("remark_actual", sa.Text, nullable=False, server_default=""),
        sa.Column("product_id", UUID(as_uuid=True), nullable=True),
        sa.Column("saved_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("waybill_id", "product_name", name="uq_count_ledger_waybill_product"),
    )
    op.create_index("ix_count_ledger_waybill", "count_ledger", ["waybill_id"])


def downgrade() -> None:
    tables = [
        "count_ledger",
        "waybill_items",
        "waybills",
        "products",
        "users",
    ]
    for table in tables:
        op.drop_table(table)
