"""
ORM table definitions for the reconciliation engine

One module holds every table because the domains reference each other:
line items point at ledger entries, ledger entries point back at line items,
stock items point at trips/stops/line items, scheduler tasks point at trips.

Household and user ids are plain UUID columns; those tables live elsewhere.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
    Uuid,
)

from packages.common.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


# === Tags ===

class Tag(TimestampMixin, Base):
    __tablename__ = "tags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)


line_item_tags = Table(
    "line_item_tags",
    Base.metadata,
    Column("line_item_id", Uuid, ForeignKey("line_items.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

ledger_entry_tags = Table(
    "ledger_entry_tags",
    Base.metadata,
    Column("ledger_entry_id", Uuid, ForeignKey("ledger_entries.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Uuid, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


# === Trip aggregate ===

class Store(TimestampMixin, Base):
    __tablename__ = "stores"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    store_number = Column(Text, comment="Store id printed on receipts (e.g. 'Store #1234' -> '1234')")
    address = Column(Text)
    state = Column(String(8))
    tax_rate = Column(Numeric(6, 4))

    __table_args__ = (
        UniqueConstraint("household_id", "store_number", name="uq_stores_household_store_number"),
    )


class ShoppingTrip(TimestampMixin, Base):
    __tablename__ = "shopping_trips"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False)
    driver_name = Column(Text)
    trip_start = Column(DateTime(timezone=True), index=True)
    trip_end = Column(DateTime(timezone=True))
    notes = Column(Text)


class Stop(TimestampMixin, Base):
    __tablename__ = "stops"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    trip_id = Column(Uuid, ForeignKey("shopping_trips.id"), nullable=False, index=True)
    store_id = Column(Uuid, ForeignKey("stores.id"), index=True)
    store_name = Column(Text, comment="Freeform name when no store row matched")
    store_address = Column(Text)
    notes = Column(Text)
    position = Column(Integer, nullable=False)


class LineItem(TimestampMixin, Base):
    __tablename__ = "line_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    stop_id = Column(Uuid, ForeignKey("stops.id"), index=True)
    ledger_entry_id = Column(Uuid, ForeignKey("ledger_entries.id"), nullable=False, unique=True)

    brand = Column(Text, nullable=False)
    item = Column(Text, nullable=False)
    unit_measurement = Column(Text)
    count = Column(Numeric(10, 2))
    count_unit = Column(Text)
    price_per_count = Column(Numeric(10, 2))
    units = Column(Numeric(10, 2))
    price_per_unit = Column(Numeric(10, 2))
    taxable = Column(Boolean, nullable=False, default=False)
    tax_rate = Column(Numeric(6, 4))
    total_price = Column(Numeric(10, 2), nullable=False)
    store_code = Column(Text)
    item_name = Column(Text, comment="Raw receipt text")
    usage_mode = Column(String(16), nullable=False, default="count")


# === Ledger ===

class LedgerSource(TimestampMixin, Base):
    __tablename__ = "ledger_sources"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False)
    name = Column(Text, nullable=False)
    type = Column(String(16), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    is_recurring = Column(Boolean, nullable=False, default=False)


class LedgerEntry(TimestampMixin, Base):
    __tablename__ = "ledger_entries"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False)
    source_id = Column(Uuid, ForeignKey("ledger_sources.id"), index=True)
    line_item_id = Column(
        Uuid,
        ForeignKey("line_items.id", use_alter=True, name="fk_ledger_entries_line_item"),
        unique=True,
    )
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(String(16), nullable=False)
    notes = Column(Text)


# === Stock ===

class StockSheet(TimestampMixin, Base):
    __tablename__ = "stock_sheets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)


class StockItem(TimestampMixin, Base):
    __tablename__ = "stock_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sheet_id = Column(Uuid, ForeignKey("stock_sheets.id"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    brand = Column(Text)
    quantity = Column(Integer, nullable=False, default=0)
    min_quantity = Column(Integer, nullable=False, default=0)
    unit_of_measure = Column(Text)
    count = Column(Numeric(10, 2))
    count_unit = Column(Text)
    price_per_count = Column(Numeric(10, 2))
    price_per_unit = Column(Numeric(10, 2))
    total_price = Column(Numeric(10, 2))
    taxable = Column(Boolean, nullable=False, default=False)
    store = Column(Text, comment="Store display name")
    store_code = Column(Text)
    item_name = Column(Text)
    usage_mode = Column(String(16), nullable=False, default="count")

    # Set only when the item was derived from a purchase
    trip_id = Column(Uuid, ForeignKey("shopping_trips.id"), index=True)
    stop_id = Column(Uuid, ForeignKey("stops.id"), index=True)
    purchase_id = Column(Uuid, ForeignKey("line_items.id"), index=True)


# === Learning: catalog, corrections, tax rules ===

class CatalogEntry(TimestampMixin, Base):
    __tablename__ = "brands"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    name = Column(Text, nullable=False)
    default_item = Column(Text)
    default_unit_measurement = Column(Text)
    default_count_unit = Column(Text)
    default_quantity_per_count = Column(Numeric(10, 2))
    default_tags = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("household_id", "name", name="uq_brands_household_name"),
    )


class Correction(TimestampMixin, Base):
    __tablename__ = "format_corrections"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    raw_text = Column(Text, nullable=False)
    corrected_brand = Column(Text)
    corrected_item = Column(Text)
    corrected_unit = Column(Text)
    corrected_quantity = Column(Numeric(10, 2))
    corrected_unit_quantity = Column(Numeric(10, 2))
    preference_notes = Column(Text)
    match_type = Column(String(16), nullable=False, default="exact")

    __table_args__ = (
        UniqueConstraint("household_id", "raw_text", name="uq_format_corrections_household_raw_text"),
    )


class TaxRule(TimestampMixin, Base):
    __tablename__ = "tax_rules"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    store_name = Column(Text, nullable=False)
    indicator = Column(String(5), nullable=False)
    is_taxable = Column(Boolean, nullable=False)
    description = Column(Text)
    default_tax_rate = Column(Numeric(6, 4))


# === Scheduler ===

class SchedulerTask(TimestampMixin, Base):
    __tablename__ = "scheduler_tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False)
    title = Column(Text, nullable=False)
    date = Column(Date)
    status = Column(String(16), nullable=False, default="not_started")
    trip_id = Column(Uuid, ForeignKey("shopping_trips.id"), index=True)
