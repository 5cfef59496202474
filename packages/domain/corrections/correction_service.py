"""
Correction Store - learned raw-text corrections and store tax-indicator meanings

Learning loop:
1. Receipt text "GV WHL MLK" arrives with a guessed brand/item
2. User edits it to "Great Value" / "Whole Milk" → correction stored
3. Next time the same raw text shows up, the correction is looked up

Tax indicators work the same way per store: once the user says Mart's "N"
means non-taxable, that meaning is stored for the household.

Lookups are read-only and return None when nothing was learned. Callers
pick their own fallback.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.database import unit_of_work
from packages.common.errors import ValidationError
from packages.common.models import Correction, TaxRule
from packages.domain.corrections.schemas import CorrectionFields, MatchType, TaxMeaningInput

logger = structlog.get_logger()


def similar_text(text1: Optional[str], text2: Optional[str]) -> bool:
    """True when either string contains the other (case-insensitive, trimmed)"""
    t1 = (text1 or "").strip().lower()
    t2 = (text2 or "").strip().lower()
    return t1 in t2 or t2 in t1


class CorrectionService:
    """Upserts and lookups for corrections and tax rules"""

    # --- Raw text corrections ---

    async def record_correction(
        self,
        household_id: UUID,
        raw_text: str,
        fields: CorrectionFields,
        db: AsyncSession,
    ) -> Correction:
        """Upsert keyed by (household, raw_text); every corrected field is replaced"""
        if not raw_text or not raw_text.strip():
            raise ValidationError("raw_text is required")

        async with unit_of_work(db, "record_correction"):
            result = await db.execute(
                select(Correction).where(
                    Correction.household_id == household_id,
                    Correction.raw_text == raw_text,
                )
            )
            correction = result.scalar_one_or_none()

            values = fields.model_dump()
            values["match_type"] = fields.match_type.value

            if correction is None:
                correction = Correction(household_id=household_id, raw_text=raw_text, **values)
                db.add(correction)
                action = "created"
            else:
                for field, value in values.items():
                    setattr(correction, field, value)
                action = "updated"
            await db.flush()

        logger.info("correction_recorded",
                    raw_text=raw_text,
                    action=action,
                    corrected_brand=correction.corrected_brand,
                    corrected_item=correction.corrected_item)
        return correction

    async def get_correction(
        self,
        household_id: UUID,
        raw_text: str,
        db: AsyncSession,
    ) -> Optional[Correction]:
        result = await db.execute(
            select(Correction)
            .where(
                Correction.household_id == household_id,
                func.lower(Correction.raw_text) == raw_text.lower(),
            )
            .limit(1)
        )
        correction = result.scalar_one_or_none()

        if correction:
            logger.debug("correction_hit", raw_text=raw_text)
        else:
            logger.debug("correction_miss", raw_text=raw_text)
        return correction

    async def learn_from_edit(
        self,
        household_id: UUID,
        raw_text: Optional[str],
        brand: Optional[str],
        item: Optional[str],
        db: AsyncSession,
    ) -> Optional[Correction]:
        """
        Store a correction only when the user really changed the text.

        A brand or item that is a substring of the raw text (or vice versa)
        is treated as the parser's own guess, not a user edit.
        """
        if not raw_text or not raw_text.strip():
            return None

        brand_edited = bool(brand) and not similar_text(raw_text, brand)
        item_edited = bool(item) and not similar_text(raw_text, item)

        if not (brand_edited or item_edited):
            return None

        return await self.record_correction(
            household_id,
            raw_text,
            CorrectionFields(
                corrected_brand=brand if brand_edited else None,
                corrected_item=item if item_edited else None,
                match_type=MatchType.EXACT,
            ),
            db,
        )

    # --- Tax indicator meanings ---

    def _tax_rule_query(self, household_id: UUID, store_name: str):
        return select(TaxRule).where(
            TaxRule.household_id == household_id,
            func.lower(TaxRule.store_name) == store_name.lower(),
        )

    async def record_tax_meaning(
        self,
        household_id: UUID,
        data: TaxMeaningInput,
        db: AsyncSession,
    ) -> TaxRule:
        """Upsert keyed by (household, store, indicator), case-insensitive"""
        async with unit_of_work(db, "record_tax_meaning"):
            result = await db.execute(
                self._tax_rule_query(household_id, data.store_name)
                .where(func.upper(TaxRule.indicator) == data.indicator.upper())
                .limit(1)
            )
            rule = result.scalar_one_or_none()

            if rule is None:
                rule = TaxRule(
                    household_id=household_id,
                    store_name=data.store_name,
                    indicator=data.indicator,
                    is_taxable=data.is_taxable,
                    default_tax_rate=data.default_tax_rate,
                    description=data.description,
                )
                db.add(rule)
                action = "created"
            else:
                rule.is_taxable = data.is_taxable
                rule.default_tax_rate = data.default_tax_rate
                rule.description = data.description
                action = "updated"
            await db.flush()

        logger.info("tax_meaning_recorded",
                    store=data.store_name,
                    indicator=data.indicator,
                    is_taxable=data.is_taxable,
                    action=action)
        return rule

    async def get_tax_meaning(
        self,
        household_id: UUID,
        store_name: str,
        indicator: str,
        db: AsyncSession,
    ) -> Optional[TaxRule]:
        result = await db.execute(
            self._tax_rule_query(household_id, store_name)
            .where(func.upper(TaxRule.indicator) == indicator.upper())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_tax_meanings(
        self,
        household_id: UUID,
        store_name: str,
        db: AsyncSession,
    ) -> List[TaxRule]:
        result = await db.execute(
            self._tax_rule_query(household_id, store_name).order_by(TaxRule.indicator)
        )
        return list(result.scalars().all())

    async def apply_tax_meaning(
        self,
        item: Dict[str, Any],
        household_id: UUID,
        store_name: str,
        db: AsyncSession,
    ) -> Dict[str, Any]:
        """
        Overlay a learned tax meaning on a parsed receipt item.

        Returns a new dict with taxable/tax_rate set when the item's
        tax_indicator has a stored meaning, else the item unchanged.
        """
        indicator = item.get("tax_indicator")
        if not indicator:
            return item

        rule = await self.get_tax_meaning(household_id, store_name, indicator, db)
        if rule is None:
            return item

        tax_rate: Optional[Decimal] = rule.default_tax_rate
        return {**item, "taxable": rule.is_taxable, "tax_rate": tax_rate}


# Singleton instance
correction_service = CorrectionService()
