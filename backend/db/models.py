"""
Waybill Tracker Database Models

5 tables for inbound receiving.

Tables:
  1. users            - Staff accounts with a role (Super Admin / Admin / User)
  2. products         - Product directory (+ normalized shadow columns)
  3. waybills         - Delivery manifests, OPEN -> CLOSED lifecycle
  4. waybill_items    - Ordered line items owned by a waybill
  5. count_ledger     - Audit trail of count saves, one row per (waybill, product)
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    types,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship, validates

from db.session import Base


class GUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL UUID when available, stores as CHAR(36) on SQLite.
    """

    impl = types.String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(types.String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
        return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


def normalize(value: str | None) -> str:
    """Lowercase + trimmed shadow used for case-insensitive lookups."""
    return value.strip().lower() if value else ""


# ─── 1. Users ───────────────────────────────────────────────────────────────


class User(Base):
    __tablename__ = "users"

    user_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    username = Column(String(100), nullable=False, unique=True)
    fullname = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="User")
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        CheckConstraint("role IN ('Super Admin', 'Admin', 'User')", name="ck_user_role"),
    )

    @validates("email")
    def _lowercase_email(self, key, value):
        return value.strip().lower() if value else value


# ─── 2. Products ────────────────────────────────────────────────────────────


class Product(Base):
    __tablename__ = "products"

    product_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    category = Column(String(100), nullable=False)
    category_normalized = Column(String(100), nullable=False, default="")
    product_name = Column(String(255), nullable=False, unique=True)
    product_name_normalized = Column(String(255), nullable=False, default="")

    # Commerce fields owned by the external product system
    sku = Column(String(100))
    barcode = Column(String(64))
    price = Column(Float)
    stock = Column(Float)
    base_unit = Column(String(50))
    conversion_factor = Column(Float)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_products_category_normalized", "category_normalized"),
        Index("ix_products_name_normalized", "product_name_normalized"),
        CheckConstraint("conversion_factor IS NULL OR conversion_factor >= 1", name="ck_product_conversion_factor"),
    )

    # Shadow columns follow every assignment, so create and update paths
    # cannot drift from the source fields.
    @validates("category")
    def _sync_category(self, key, value):
        self.category_normalized = normalize(value)
        return value

    @validates("product_name")
    def _sync_product_name(self, key, value):
        self.product_name_normalized = normalize(value)
        return value


# ─── 3. Waybills ────────────────────────────────────────────────────────────


class Waybill(Base):
    __tablename__ = "waybills"

    waybill_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    waybill_no = Column(String(100), nullable=False, unique=True)
    date = Column(DateTime, nullable=False, default=datetime.utcnow)
    count = Column(Float, nullable=False)
    uom = Column(String(50), nullable=False)
    status = Column(String(10), nullable=False, default="OPEN")
    closed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_waybills_status", "status"),
        Index("ix_waybills_closed_at", "closed_at"),
        CheckConstraint("status IN ('OPEN', 'CLOSED')", name="ck_waybill_status"),
        CheckConstraint("count >= 0", name="ck_waybill_count_positive"),
        CheckConstraint(
            "(status = 'CLOSED' AND closed_at IS NOT NULL) OR (status = 'OPEN' AND closed_at IS NULL)",
            name="ck_waybill_closed_at",
        ),
    )

    items = relationship(
        "WaybillItem",
        back_populates="waybill",
        cascade="all, delete-orphan",
        order_by="WaybillItem.position",
        lazy="selectin",
    )


# ─── 4. Waybill Items ───────────────────────────────────────────────────────


class WaybillItem(Base):
    __tablename__ = "waybill_items"

    item_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    waybill_id = Column(GUID(), ForeignKey("waybills.waybill_id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    incoming = Column(Float, nullable=False)
    uom_incoming = Column(String(50), nullable=False)
    actual_count = Column(Integer, nullable=False, default=0)
    remark_actual = Column(Text, nullable=False, default="")
    # Weak reference: no FK so product deletes never cascade into manifests
    product_id = Column(GUID(), nullable=True)
    conversion_factor = Column(Float, nullable=False, default=1)

    __table_args__ = (
        Index("ix_waybill_items_waybill", "waybill_id", "position"),
        CheckConstraint("incoming >= 0", name="ck_item_incoming_positive"),
        CheckConstraint("actual_count >= 0", name="ck_item_actual_positive"),
        CheckConstraint("conversion_factor >= 1", name="ck_item_conversion_factor"),
    )

    waybill = relationship("Waybill", back_populates="items")


# ─── 5. Count Ledger ────────────────────────────────────────────────────────


class CountLedgerEntry(Base):
    """One row per (waybill, product); overwritten on each save, never deleted.

    waybill_id carries no FK so entries outlive the waybill they describe.
    """

    __tablename__ = "count_ledger"

    entry_id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    waybill_id = Column(GUID(), nullable=False)
    product_name = Column(String(255), nullable=False)
    waybill_no = Column(String(100), nullable=False)
    declared_count = Column(Float)
    uom = Column(String(50))
    waybill_date = Column(DateTime)
    counts = Column(JSON, nullable=False, default=list)
    total = Column(Integer, nullable=False, default=0)
    remark_actual = Column(Text, nullable=False, default="")
    product_id = Column(GUID(), nullable=True)
    saved_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("waybill_id", "product_name", name="uq_count_ledger_waybill_product"),
        Index("ix_count_ledger_waybill", "waybill_id"),
    )
