"""
Purchase schemas (Pydantic models)
Explicit input types for the reconciliation workflow and the edits that follow it
"""
from datetime import date as date_type
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, validator


class UsageMode(str, Enum):
    """How an item is consumed: whole units, or a measured quantity"""
    COUNT = "count"
    QUANTITY = "quantity"


class ItemSource(str, Enum):
    """Which table a store-level item row lives in"""
    MANUAL = "manual"      # stock_items
    RECEIPT = "receipt"    # line_items


class NewStop(BaseModel):
    """
    Descriptor for a stop that may not exist yet.

    The store is matched by id, then store number, then name. When nothing
    matches, the stop keeps store_name as freeform text.
    """
    trip_id: Optional[UUID] = Field(None, description="Attach to this trip instead of the same-day trip")
    store_id: Optional[UUID] = None
    store_number: Optional[str] = Field(None, description="Store id printed on the receipt")
    store_name: Optional[str] = None
    store_address: Optional[str] = None
    notes: Optional[str] = None


class PurchaseDetails(BaseModel):
    """One purchased product to reconcile across trips, ledger, stock and catalog"""
    # Exactly one of these, or neither for a purchase outside any trip
    stop_id: Optional[UUID] = None
    new_stop: Optional[NewStop] = None

    brand: str = Field(..., min_length=1)
    item: str = Field(..., min_length=1)
    unit_measurement: Optional[str] = None
    count: Optional[Decimal] = Field(None, ge=0)
    count_unit: Optional[str] = None
    price_per_count: Optional[Decimal] = Field(None, ge=0)
    units: Optional[Decimal] = Field(None, ge=0)
    price_per_unit: Optional[Decimal] = Field(None, ge=0)
    taxable: bool = False
    tax_rate: Optional[Decimal] = Field(None, ge=0)
    total_price: Decimal = Field(..., ge=0)
    store_code: Optional[str] = None
    item_name: Optional[str] = Field(None, description="Raw receipt text")
    usage_mode: UsageMode = UsageMode.COUNT

    date: Optional[date_type] = Field(None, description="Purchase date in the household's local timezone")
    tag_ids: List[UUID] = Field(default_factory=list)
    stock_sheet_id: Optional[UUID] = Field(None, description="Stock sheet for the derived stock item")

    class Config:
        json_schema_extra = {
            "example": {
                "new_stop": {"store_name": "Mart", "store_number": "1234"},
                "brand": "Acme",
                "item": "Milk",
                "unit_measurement": "gal",
                "count": "1",
                "price_per_count": "3.49",
                "total_price": "3.49",
                "taxable": False,
                "date": "2024-03-05",
                "tag_ids": []
            }
        }


class PurchaseInput(PurchaseDetails):
    """Purchase details plus who recorded it"""
    household_id: UUID
    user_id: UUID


class LineItemUpdate(BaseModel):
    """Partial edit of a recorded line item; unset fields are left alone"""
    brand: Optional[str] = Field(None, min_length=1)
    item: Optional[str] = Field(None, min_length=1)
    unit_measurement: Optional[str] = None
    count: Optional[Decimal] = Field(None, ge=0)
    count_unit: Optional[str] = None
    price_per_count: Optional[Decimal] = Field(None, ge=0)
    units: Optional[Decimal] = Field(None, ge=0)
    price_per_unit: Optional[Decimal] = Field(None, ge=0)
    taxable: Optional[bool] = None
    tax_rate: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)
    store_code: Optional[str] = None
    item_name: Optional[str] = None
    usage_mode: Optional[UsageMode] = None
    tag_ids: Optional[List[UUID]] = None

    @validator("brand", "item", "taxable", "total_price", "usage_mode", pre=True)
    def reject_null(cls, v):
        """These columns are never null: omit the field to leave it alone"""
        if v is None:
            raise ValueError("cannot be null")
        return v


class StoreItemUpdate(BaseModel):
    """
    Edit of an item as seen from a store's item list.

    brand, unit and price are shared fields: with propagation enabled they
    fan out to sibling rows of the same brand that still hold the old value.
    """
    brand: Optional[str] = None
    name: Optional[str] = None
    unit: Optional[str] = None
    price: Optional[Decimal] = None
    usage_mode: Optional[UsageMode] = None

    @validator("usage_mode", pre=True)
    def reject_null_usage_mode(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v

    @validator("price", pre=True)
    def parse_price(cls, v):
        """Accept price strings; blank or unparseable means no price"""
        if v is None or isinstance(v, Decimal):
            return v
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
            try:
                return Decimal(v)
            except InvalidOperation:
                return None
        return v


class LineItemOut(BaseModel):
    id: UUID
    household_id: UUID
    stop_id: Optional[UUID] = None
    ledger_entry_id: UUID
    brand: str
    item: str
    unit_measurement: Optional[str] = None
    count: Optional[Decimal] = None
    price_per_unit: Optional[Decimal] = None
    taxable: bool
    total_price: Decimal
    usage_mode: UsageMode

    class Config:
        from_attributes = True
