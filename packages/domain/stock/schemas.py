"""
Data schemas for the stock (inventory) module
"""
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from packages.common.schemas.purchase import UsageMode


class StockSheetCreate(BaseModel):
    household_id: UUID
    name: str = Field(..., min_length=1)


class StockItemCreate(BaseModel):
    """
    An on-hand quantity record.

    trip_id / stop_id / purchase_id are only set for items derived from a purchase.
    """
    sheet_id: UUID
    name: str = Field(..., min_length=1)
    brand: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    min_quantity: int = Field(default=0, ge=0)
    unit_of_measure: Optional[str] = None
    count: Optional[Decimal] = Field(None, ge=0)
    count_unit: Optional[str] = None
    price_per_count: Optional[Decimal] = Field(None, ge=0)
    price_per_unit: Optional[Decimal] = Field(None, ge=0)
    total_price: Optional[Decimal] = Field(None, ge=0)
    taxable: bool = False
    store: Optional[str] = None
    store_code: Optional[str] = None
    item_name: Optional[str] = None
    usage_mode: UsageMode = UsageMode.COUNT

    trip_id: Optional[UUID] = None
    stop_id: Optional[UUID] = None
    purchase_id: Optional[UUID] = None


class StockItemOut(BaseModel):
    id: UUID
    sheet_id: UUID
    name: str
    brand: Optional[str] = None
    quantity: int
    unit_of_measure: Optional[str] = None
    price_per_unit: Optional[Decimal] = None
    store: Optional[str] = None
    usage_mode: UsageMode
    trip_id: Optional[UUID] = None
    stop_id: Optional[UUID] = None
    purchase_id: Optional[UUID] = None

    class Config:
        from_attributes = True
