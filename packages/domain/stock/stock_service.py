"""
Stock Service - inventory sheets and items

Recorded purchases drop a stock item into one of the household's sheets.
That write is advisory: any failure surfaces as StockError, which the
purchase workflow logs and swallows.
"""
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.errors import StockError
from packages.common.models import LineItem, StockItem, StockSheet
from packages.common.schemas.purchase import UsageMode
from packages.domain.stock.schemas import StockItemCreate, StockSheetCreate

logger = structlog.get_logger()


class StockService:
    """Sheets and on-hand items. Methods flush but never commit."""

    def __init__(self):
        self.settings = get_settings()

    async def create_sheet(self, data: StockSheetCreate, db: AsyncSession) -> StockSheet:
        sheet = StockSheet(household_id=data.household_id, name=data.name)
        db.add(sheet)
        await db.flush()
        logger.info("stock_sheet_created", sheet_id=str(sheet.id), name=sheet.name)
        return sheet

    async def create_item(self, data: StockItemCreate, db: AsyncSession) -> StockItem:
        """
        Insert a stock item.

        Raises:
            StockError: sheet missing or the insert was rejected
        """
        sheet = await db.get(StockSheet, data.sheet_id)
        if sheet is None:
            raise StockError(f"Stock sheet {data.sheet_id} not found")

        values = data.model_dump()
        values["usage_mode"] = data.usage_mode.value
        item = StockItem(**values)
        db.add(item)
        try:
            await db.flush()
        except SQLAlchemyError as e:
            raise StockError(f"Stock item insert failed: {e}") from e

        logger.debug("stock_item_created",
                     item_id=str(item.id),
                     sheet_id=str(item.sheet_id),
                     name=item.name)
        return item

    async def resolve_sheet(
        self,
        household_id: UUID,
        sheet_id: Optional[UUID],
        db: AsyncSession,
    ) -> StockSheet:
        """
        Pick the sheet a purchase lands in.

        An explicit sheet must belong to the household. Otherwise the
        household's oldest sheet is used, or a default sheet is created
        when AUTO_CREATE_STOCK_SHEET is on.

        Raises:
            StockError: no usable sheet
        """
        if sheet_id is not None:
            sheet = await db.get(StockSheet, sheet_id)
            if sheet is None or sheet.household_id != household_id:
                raise StockError(f"Stock sheet {sheet_id} not found for household")
            return sheet

        result = await db.execute(
            select(StockSheet)
            .where(StockSheet.household_id == household_id)
            .order_by(StockSheet.created_at)
            .limit(1)
        )
        sheet = result.scalar_one_or_none()
        if sheet:
            return sheet

        if not self.settings.auto_create_stock_sheet:
            raise StockError("Household has no stock sheet")

        return await self.create_sheet(
            StockSheetCreate(household_id=household_id, name=self.settings.default_stock_sheet_name),
            db,
        )

    async def create_item_from_line_item(
        self,
        line_item: LineItem,
        store_name: Optional[str],
        trip_id: Optional[UUID],
        db: AsyncSession,
        sheet_id: Optional[UUID] = None,
    ) -> StockItem:
        """Derive a stock item from a freshly recorded line item"""
        sheet = await self.resolve_sheet(line_item.household_id, sheet_id, db)

        quantity = int(line_item.count) if line_item.count is not None else 1

        return await self.create_item(
            StockItemCreate(
                sheet_id=sheet.id,
                name=line_item.item,
                brand=line_item.brand,
                quantity=max(quantity, 0),
                unit_of_measure=line_item.unit_measurement,
                count=line_item.count,
                count_unit=line_item.count_unit,
                price_per_count=line_item.price_per_count,
                price_per_unit=line_item.price_per_unit,
                total_price=line_item.total_price,
                taxable=line_item.taxable,
                store=store_name,
                store_code=line_item.store_code,
                item_name=line_item.item_name,
                usage_mode=UsageMode(line_item.usage_mode or UsageMode.COUNT.value),
                trip_id=trip_id,
                stop_id=line_item.stop_id,
                purchase_id=line_item.id,
            ),
            db,
        )


# Singleton instance
stock_service = StockService()
