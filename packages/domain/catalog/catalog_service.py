"""
Catalog Service - learned per-brand defaults

Every purchase teaches the catalog what a brand usually means: the item,
unit, count unit, quantity per count and tags of the latest purchase become
the brand's defaults. Each new purchase overwrites the previous defaults
wholesale; nothing is merged.

Example flow:
- Purchase "Acme" / "Milk" / gal → brand Acme defaults: Milk, gal
- Purchase "Acme" / "Cheese" / oz → brand Acme defaults: Cheese, oz
"""
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.models import CatalogEntry, LineItem, Stop

logger = structlog.get_logger()


class CatalogService:
    """Brand defaults learned from purchases"""

    def __init__(self):
        self.settings = get_settings()

    async def get_brand_by_name(
        self,
        household_id: UUID,
        name: Optional[str],
        db: AsyncSession,
    ) -> Optional[CatalogEntry]:
        """Case-insensitive brand lookup. Returns None when absent."""
        if not name:
            return None

        result = await db.execute(
            select(CatalogEntry)
            .where(
                CatalogEntry.household_id == household_id,
                func.lower(CatalogEntry.name) == name.lower(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def search_brands(self, household_id: UUID, query: str, db: AsyncSession) -> List[CatalogEntry]:
        """Substring search for autocomplete"""
        result = await db.execute(
            select(CatalogEntry)
            .where(
                CatalogEntry.household_id == household_id,
                CatalogEntry.name.ilike(f"%{query}%"),
            )
            .order_by(CatalogEntry.name)
            .limit(10)
        )
        return list(result.scalars().all())

    async def upsert_brand_defaults(
        self,
        line_item: LineItem,
        tag_ids: List[UUID],
        db: AsyncSession,
    ) -> Optional[CatalogEntry]:
        """
        Overwrite the brand's defaults with this line item's values.

        The brand row is matched on the trimmed name exactly; blank brands
        are skipped.
        """
        if not isinstance(line_item.brand, str) or not line_item.brand.strip():
            return None

        brand_name = line_item.brand.strip()

        result = await db.execute(
            select(CatalogEntry).where(
                CatalogEntry.household_id == line_item.household_id,
                CatalogEntry.name == brand_name,
            )
        )
        entry = result.scalar_one_or_none()

        defaults = {
            "default_item": line_item.item,
            "default_unit_measurement": line_item.unit_measurement,
            "default_count_unit": line_item.count_unit,
            "default_quantity_per_count": line_item.units,
            "default_tags": [str(tag_id) for tag_id in tag_ids],
        }

        if entry is None:
            entry = CatalogEntry(household_id=line_item.household_id, name=brand_name, **defaults)
            db.add(entry)
            action = "created"
        else:
            for field, value in defaults.items():
                setattr(entry, field, value)
            action = "updated"

        await db.flush()

        logger.debug("catalog_defaults_upserted",
                     brand=brand_name,
                     action=action,
                     default_item=line_item.item)
        return entry

    async def suggest_for_brand(
        self,
        household_id: UUID,
        brand_name: str,
        db: AsyncSession,
        store_id: Optional[UUID] = None,
    ) -> Dict[str, Any]:
        """
        Auto-populate data for a brand: the learned defaults plus recent purchases.

        Returns:
            {"brand": CatalogEntry | None, "recent_purchases": [LineItem, ...]}
        """
        brand = await self.get_brand_by_name(household_id, brand_name, db)

        query = (
            select(LineItem)
            .where(
                LineItem.household_id == household_id,
                func.lower(LineItem.brand) == brand_name.lower(),
            )
            .order_by(LineItem.created_at.desc())
            .limit(self.settings.catalog_suggestion_limit)
        )
        if store_id is not None:
            query = query.join(Stop, LineItem.stop_id == Stop.id).where(Stop.store_id == store_id)

        result = await db.execute(query)
        recent = list(result.scalars().all())

        logger.debug("brand_suggestions",
                     brand=brand_name,
                     known_brand=brand is not None,
                     recent=len(recent))

        return {"brand": brand, "recent_purchases": recent}


# Singleton instance
catalog_service = CatalogService()
