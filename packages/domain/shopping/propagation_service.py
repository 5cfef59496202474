"""
Propagation Service - fan-out of edits made from a store's item list

A store's item list mixes two kinds of rows: stock items entered by hand
("manual") and recorded purchases ("receipt"). Editing one row can carry the
change to its siblings:

- brand / unit / price (when propagate=True): siblings of the same original
  brand at the same store that still hold the OLD value get the new value.
  Rows that were already edited to something else are left alone.
- usage_mode (always): every line item and stock item of the household with
  the same brand and item name, compared case-insensitively.

The edited row commits first. Fan-out runs afterwards in its own
transaction, so a fan-out failure leaves the primary edit in place.
"""
from typing import Optional, Union
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.database import unit_of_work
from packages.common.errors import NotFoundError, ValidationError
from packages.common.models import LineItem, StockItem, StockSheet, Stop
from packages.common.schemas.purchase import ItemSource, StoreItemUpdate, UsageMode
from packages.domain.shopping.store_service import store_service

logger = structlog.get_logger()

# Store-list field -> column, per row kind
LINE_ITEM_FIELDS = {
    "brand": "brand",
    "name": "item",
    "unit": "unit_measurement",
    "price": "price_per_unit",
    "usage_mode": "usage_mode",
}
STOCK_ITEM_FIELDS = {
    "brand": "brand",
    "name": "name",
    "unit": "unit_of_measure",
    "price": "price_per_unit",
    "usage_mode": "usage_mode",
}

# Applied in this order
SHARED_FIELDS = ("brand", "unit", "price")


class PropagationService:
    """Store-item edits and the bulk updates that follow them"""

    async def _load_row(
        self,
        household_id: UUID,
        item_id: UUID,
        source: ItemSource,
        db: AsyncSession,
    ) -> Union[LineItem, StockItem]:
        if source == ItemSource.RECEIPT:
            row = await db.get(LineItem, item_id)
            if row is None or row.household_id != household_id:
                raise NotFoundError("LineItem", item_id)
            return row

        row = await db.get(StockItem, item_id)
        if row is not None:
            sheet = await db.get(StockSheet, row.sheet_id)
            if sheet.household_id == household_id:
                return row
        raise NotFoundError("StockItem", item_id)

    async def update_store_item(
        self,
        household_id: UUID,
        store_id: UUID,
        item_id: UUID,
        source: ItemSource,
        changes: StoreItemUpdate,
        db: AsyncSession,
        propagate: bool = False,
    ) -> Union[LineItem, StockItem]:
        """
        Edit one row of a store's item list, then fan the change out.

        Raises:
            NotFoundError: store or row not in this household
            ValidationError: blank brand or name
            TransactionError: primary edit rejected (nothing written), or
                fan-out rejected (primary edit already committed)
        """
        store = await store_service.get_store(store_id, household_id, db)
        row = await self._load_row(household_id, item_id, source, db)

        field_map = LINE_ITEM_FIELDS if source == ItemSource.RECEIPT else STOCK_ITEM_FIELDS
        values = changes.model_dump(exclude_unset=True)
        if "usage_mode" in values:
            values["usage_mode"] = values["usage_mode"].value
        for required in ("brand", "name"):
            if required in values and not (values[required] or "").strip():
                raise ValidationError(f"{required} cannot be blank")

        original_brand = row.brand
        old_values = {field: getattr(row, field_map[field]) for field in values}
        old_mode = row.usage_mode

        async with unit_of_work(db, "update_store_item"):
            for field, value in values.items():
                setattr(row, field_map[field], value)
            await db.flush()

        logger.info("store_item_updated",
                    store_id=str(store_id),
                    item_id=str(item_id),
                    source=source.value,
                    fields=sorted(values),
                    propagate=propagate)

        if propagate:
            async with unit_of_work(db, "propagate_store_item"):
                for field in SHARED_FIELDS:
                    if field not in values:
                        continue
                    old_value, new_value = old_values[field], values[field]
                    if old_value is None or old_value == new_value:
                        continue
                    await self._propagate_field(store, original_brand, field, old_value, new_value, db)

        new_mode = values.get("usage_mode")
        if new_mode is not None and new_mode != old_mode and row.brand:
            name = row.item if source == ItemSource.RECEIPT else row.name
            await self.sync_usage_mode(
                household_id,
                row.brand,
                name,
                new_mode,
                db,
                exclude_line_item_id=row.id if source == ItemSource.RECEIPT else None,
                exclude_stock_item_id=row.id if source == ItemSource.MANUAL else None,
            )

        return row

    async def _propagate_field(self, store, original_brand, field, old_value, new_value, db: AsyncSession) -> None:
        stock_column = getattr(StockItem, STOCK_ITEM_FIELDS[field])
        stock_result = await db.execute(
            update(StockItem)
            .where(
                StockItem.store == store.name,
                StockItem.brand == original_brand,
                stock_column == old_value,
            )
            .values({STOCK_ITEM_FIELDS[field]: new_value})
            .execution_options(synchronize_session=False)
        )

        stop_ids = select(Stop.id).where(Stop.store_id == store.id)
        line_column = getattr(LineItem, LINE_ITEM_FIELDS[field])
        line_result = await db.execute(
            update(LineItem)
            .where(
                LineItem.stop_id.in_(stop_ids),
                LineItem.brand == original_brand,
                line_column == old_value,
            )
            .values({LINE_ITEM_FIELDS[field]: new_value})
            .execution_options(synchronize_session=False)
        )

        logger.info("store_item_propagated",
                    store_id=str(store.id),
                    field=field,
                    old_value=str(old_value),
                    new_value=str(new_value),
                    stock_items=stock_result.rowcount,
                    line_items=line_result.rowcount)

    async def sync_usage_mode(
        self,
        household_id: UUID,
        brand: str,
        item_name: str,
        usage_mode: Union[UsageMode, str],
        db: AsyncSession,
        exclude_line_item_id: Optional[UUID] = None,
        exclude_stock_item_id: Optional[UUID] = None,
    ) -> int:
        """
        Set usage_mode on every line item and stock item of the household whose
        brand and item name match (case-insensitive). Commits.

        Returns the number of rows changed.
        """
        if not brand or not item_name:
            return 0
        mode = usage_mode.value if isinstance(usage_mode, UsageMode) else usage_mode

        async with unit_of_work(db, "sync_usage_mode"):
            line_query = update(LineItem).where(
                LineItem.household_id == household_id,
                func.lower(LineItem.brand) == brand.lower(),
                func.lower(LineItem.item) == item_name.lower(),
            )
            if exclude_line_item_id is not None:
                line_query = line_query.where(LineItem.id != exclude_line_item_id)
            line_result = await db.execute(
                line_query.values(usage_mode=mode).execution_options(synchronize_session=False)
            )

            sheet_ids = select(StockSheet.id).where(StockSheet.household_id == household_id)
            stock_query = update(StockItem).where(
                StockItem.sheet_id.in_(sheet_ids),
                func.lower(StockItem.brand) == brand.lower(),
                func.lower(StockItem.name) == item_name.lower(),
            )
            if exclude_stock_item_id is not None:
                stock_query = stock_query.where(StockItem.id != exclude_stock_item_id)
            stock_result = await db.execute(
                stock_query.values(usage_mode=mode).execution_options(synchronize_session=False)
            )

        changed = line_result.rowcount + stock_result.rowcount
        logger.info("usage_mode_synced",
                    brand=brand,
                    item=item_name,
                    usage_mode=mode,
                    line_items=line_result.rowcount,
                    stock_items=stock_result.rowcount)
        return changed


# Singleton instance
propagation_service = PropagationService()
