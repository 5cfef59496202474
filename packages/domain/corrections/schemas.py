"""
Data schemas for the correction learning store
"""
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class MatchType(str, Enum):
    """How raw text is matched when the correction is applied"""
    EXACT = "exact"
    FUZZY = "fuzzy"


class CorrectionFields(BaseModel):
    """
    What the user turned a piece of raw receipt text into.

    Unset fields are stored as null; an upsert replaces all of them.
    """
    corrected_brand: Optional[str] = None
    corrected_item: Optional[str] = None
    corrected_unit: Optional[str] = None
    corrected_quantity: Optional[Decimal] = Field(None, ge=0)
    corrected_unit_quantity: Optional[Decimal] = Field(None, ge=0)
    preference_notes: Optional[str] = None
    match_type: MatchType = MatchType.EXACT

    class Config:
        json_schema_extra = {
            "example": {
                "corrected_brand": "Great Value",
                "corrected_item": "Whole Milk",
                "corrected_unit": "gal",
                "match_type": "exact"
            }
        }


class TaxMeaningInput(BaseModel):
    """
    A store's tax indicator code and what it means.

    Stores print different codes: one store's "N" is non-taxable food,
    another's "A" is taxable.
    """
    store_name: str = Field(..., min_length=1)
    indicator: str = Field(..., min_length=1, max_length=5)
    is_taxable: bool
    default_tax_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    description: Optional[str] = None


class CorrectionOut(BaseModel):
    id: UUID
    raw_text: str
    corrected_brand: Optional[str] = None
    corrected_item: Optional[str] = None
    corrected_unit: Optional[str] = None
    match_type: MatchType

    class Config:
        from_attributes = True


class TaxRuleOut(BaseModel):
    id: UUID
    store_name: str
    indicator: str
    is_taxable: bool
    default_tax_rate: Optional[Decimal] = None
    description: Optional[str] = None

    class Config:
        from_attributes = True
