"""
Store Service - the places a household shops at

Stores are matched three ways when a purchase names one: by id, by the store
number printed on receipts, then by name (case-insensitive).
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import NotFoundError
from packages.common.models import Store
from packages.domain.shopping.schemas import StoreCreate

logger = structlog.get_logger()

# Sales tax on taxable goods when the store has no rate of its own
STATE_DEFAULT_TAX_RATES = {
    "IN": Decimal("0.07"),
    "MI": Decimal("0.06"),
}

CENT = Decimal("0.01")


class StoreService:
    """Store lookups and tax math. Methods flush but never commit."""

    async def create_store(self, data: StoreCreate, db: AsyncSession) -> Store:
        store = Store(**data.model_dump())
        db.add(store)
        await db.flush()
        logger.info("store_created", store_id=str(store.id), name=store.name)
        return store

    async def get_store(self, store_id: UUID, household_id: UUID, db: AsyncSession) -> Store:
        store = await db.get(Store, store_id)
        if store is None or store.household_id != household_id:
            raise NotFoundError("Store", store_id)
        return store

    async def find_store_by_name(self, household_id: UUID, name: Optional[str], db: AsyncSession) -> Optional[Store]:
        if not name or not name.strip():
            return None
        result = await db.execute(
            select(Store)
            .where(
                Store.household_id == household_id,
                func.lower(Store.name) == name.strip().lower(),
            )
            .order_by(Store.created_at)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_store_by_number(self, household_id: UUID, store_number: Optional[str], db: AsyncSession) -> Optional[Store]:
        if not store_number:
            return None
        result = await db.execute(
            select(Store).where(
                Store.household_id == household_id,
                Store.store_number == store_number.strip(),
            )
        )
        return result.scalar_one_or_none()

    def calculate_tax(self, store: Optional[Store], amount: Decimal, taxable: bool) -> Decimal:
        """
        Tax owed on an amount at a store.

        Uses the store's own rate, else its state's default, else zero.
        """
        if not taxable or amount is None:
            return Decimal("0.00")

        rate = None
        if store is not None:
            rate = store.tax_rate
            if rate is None and store.state:
                rate = STATE_DEFAULT_TAX_RATES.get(store.state.upper())

        if rate is None:
            return Decimal("0.00")

        return (Decimal(amount) * Decimal(rate)).quantize(CENT, rounding=ROUND_HALF_UP)


# Singleton instance
store_service = StoreService()
