"""
Data schemas for stores, shopping trips and stops
"""
from datetime import date as date_type
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, validator


class StoreCreate(BaseModel):
    household_id: UUID
    name: str = Field(..., min_length=1)
    store_number: Optional[str] = Field(None, description="Store id printed on receipts")
    address: Optional[str] = None
    state: Optional[str] = Field(None, max_length=8)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)

    @validator("state")
    def normalize_state(cls, v):
        """State codes are stored upper-case (e.g. 'in' -> 'IN')"""
        return v.strip().upper() if v else v


class StoreOut(BaseModel):
    id: UUID
    name: str
    store_number: Optional[str] = None
    address: Optional[str] = None
    state: Optional[str] = None
    tax_rate: Optional[Decimal] = None

    class Config:
        from_attributes = True


class TripCreate(BaseModel):
    household_id: UUID
    user_id: UUID
    driver_name: Optional[str] = None
    trip_start: datetime
    trip_end: Optional[datetime] = None
    notes: Optional[str] = None


class StopCreate(BaseModel):
    trip_id: UUID
    store_id: Optional[UUID] = None
    store_name: Optional[str] = None
    store_address: Optional[str] = None
    notes: Optional[str] = None


class StopOut(BaseModel):
    id: UUID
    trip_id: UUID
    store_id: Optional[UUID] = None
    store_name: Optional[str] = None
    position: int

    class Config:
        from_attributes = True


class TripOut(BaseModel):
    id: UUID
    household_id: UUID
    driver_name: Optional[str] = None
    trip_start: Optional[datetime] = None
    trip_end: Optional[datetime] = None
    notes: Optional[str] = None
    stops: List[StopOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class TripDateUpdate(BaseModel):
    date: date_type


class StockAssignment(BaseModel):
    """Line items to copy into stock, optionally each into a chosen sheet"""
    line_item_ids: List[UUID] = Field(..., min_length=1)
    sheet_assignments: Dict[UUID, UUID] = Field(default_factory=dict)
