"""
Data schemas for the ledger module
"""
from datetime import date as date_type
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class EntryType(str, Enum):
    """Direction of money"""
    INCOME = "income"
    EXPENSE = "expense"


class LedgerSourceCreate(BaseModel):
    """A named income/expense category"""
    household_id: UUID
    user_id: UUID
    name: str = Field(..., min_length=1)
    type: EntryType
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    is_recurring: bool = False


class LedgerEntryCreate(BaseModel):
    household_id: UUID
    user_id: UUID
    date: date_type
    amount: Decimal = Field(..., ge=0)
    type: EntryType
    notes: Optional[str] = None
    source_id: Optional[UUID] = None
    line_item_id: Optional[UUID] = None
    tag_ids: List[UUID] = Field(default_factory=list)


class LedgerEntryUpdate(BaseModel):
    """Partial update - only fields that were set are written"""
    date: Optional[date_type] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    type: Optional[EntryType] = None
    notes: Optional[str] = None
    source_id: Optional[UUID] = None
    line_item_id: Optional[UUID] = None
    tag_ids: Optional[List[UUID]] = None


class LedgerEntryOut(BaseModel):
    id: UUID
    household_id: UUID
    date: date_type
    amount: Decimal
    type: EntryType
    notes: Optional[str] = None
    source_id: Optional[UUID] = None
    line_item_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class MonthlySummary(BaseModel):
    """Income/expense totals for one calendar month"""
    year: int
    month: int
    income: Decimal
    expense: Decimal
    net: Decimal
