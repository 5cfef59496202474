"""
Purchase Service - reconciles one purchase across trips, ledger, stock, catalog and scheduler

Workflow for record_purchase:
1. Resolve or create the stop (and its trip)            → committed
2. Resolve or create the ledger source for the store    → committed
3. One transaction:
   a. Ledger entry (amount = total price)
   b. Line item pointing at the entry
   c. Tags on both
   d. Entry pointed back at the line item
   e. Stock item          (savepoint, failure logged and skipped)
   f. Catalog defaults    (savepoint, failure logged and skipped)
4. Scheduler task for the trip (own transaction, failure logged and skipped)

The line item and its ledger entry exist together or not at all.
"""
from typing import Dict, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.database import unit_of_work
from packages.common.errors import AdvisoryFailure, NotFoundError, StockError, ValidationError
from packages.common.models import LineItem, StockItem, Stop, Store, utcnow
from packages.common.schemas.purchase import LineItemUpdate, PurchaseInput
from packages.domain.catalog.catalog_service import catalog_service
from packages.domain.ledger.ledger_service import ledger_service
from packages.domain.ledger.schemas import EntryType, LedgerEntryCreate, LedgerEntryUpdate
from packages.domain.scheduler.scheduler_service import scheduler_service
from packages.domain.shopping.propagation_service import propagation_service
from packages.domain.shopping.trip_service import trip_service
from packages.domain.stock.stock_service import stock_service
from packages.domain.tags.tag_service import tag_service

logger = structlog.get_logger()


class PurchaseService:
    """Recording and editing purchases"""

    async def get_line_item(self, line_item_id: UUID, household_id: UUID, db: AsyncSession) -> LineItem:
        line_item = await db.get(LineItem, line_item_id)
        if line_item is None or line_item.household_id != household_id:
            raise NotFoundError("LineItem", line_item_id)
        return line_item

    async def _store_context(self, stop: Optional[Stop], db: AsyncSession):
        """(store display name, trip id) for a stop"""
        if stop is None:
            return None, None
        store = await db.get(Store, stop.store_id) if stop.store_id else None
        store_name = store.name if store else stop.store_name
        return store_name, stop.trip_id

    async def record_purchase(self, data: PurchaseInput, db: AsyncSession) -> LineItem:
        """
        Record one purchase.

        Raises:
            ValidationError: both stop_id and new_stop given, or a new stop without a store
            NotFoundError: stop, trip or store belongs to nobody in this household
            TransactionError: the entry/line item write was rejected; nothing from
                step 3 is kept
        """
        if data.stop_id is not None and data.new_stop is not None:
            raise ValidationError("Give either stop_id or new_stop, not both")

        purchase_date = data.date
        if purchase_date is None:
            purchase_date = utcnow().date()
            logger.warning("purchase_missing_date",
                           household_id=str(data.household_id),
                           brand=data.brand,
                           item=data.item,
                           fallback_date=purchase_date.isoformat())

        # Steps 1-2
        async with unit_of_work(db, "resolve_purchase_stop"):
            stop = await trip_service.resolve_stop(
                data.household_id,
                data.user_id,
                data.stop_id,
                data.new_stop,
                purchase_date,
                db,
            )
            store_name, trip_id = await self._store_context(stop, db)
            source = await ledger_service.get_or_create_source_for_store(
                data.household_id, data.user_id, store_name, db
            )

        # Step 3
        async with unit_of_work(db, "record_purchase"):
            entry = await ledger_service.create_entry(
                LedgerEntryCreate(
                    household_id=data.household_id,
                    user_id=data.user_id,
                    date=purchase_date,
                    amount=data.total_price,
                    type=EntryType.EXPENSE,
                    notes=f"Purchase: {data.brand} - {data.item}",
                    source_id=source.id if source else None,
                ),
                db,
            )

            line_item = LineItem(
                household_id=data.household_id,
                stop_id=stop.id if stop else None,
                ledger_entry_id=entry.id,
                brand=data.brand,
                item=data.item,
                unit_measurement=data.unit_measurement,
                count=data.count,
                count_unit=data.count_unit,
                price_per_count=data.price_per_count,
                units=data.units,
                price_per_unit=data.price_per_unit,
                taxable=data.taxable,
                tax_rate=data.tax_rate,
                total_price=data.total_price,
                store_code=data.store_code,
                item_name=data.item_name,
                usage_mode=data.usage_mode.value,
            )
            db.add(line_item)
            await db.flush()

            tags = await tag_service.resolve_tags(data.household_id, data.tag_ids, db)
            await tag_service.set_line_item_tags(line_item.id, tags, db)
            await tag_service.set_ledger_entry_tags(entry.id, tags, db)

            await ledger_service.update_entry(entry, LedgerEntryUpdate(line_item_id=line_item.id), db)

            await self._add_to_stock_best_effort(line_item, store_name, trip_id, data.stock_sheet_id, db)
            await self._update_catalog_best_effort(line_item, [tag.id for tag in tags], db)

        # Step 4
        if trip_id is not None:
            try:
                await scheduler_service.ensure_task_for_trip(
                    trip_id, data.household_id, data.user_id, purchase_date, db
                )
            except AdvisoryFailure as e:
                logger.warning("trip_task_failed", trip_id=str(trip_id), error=str(e))
                # The failed task write rolled back and expired the committed purchase
                await db.refresh(line_item)

        logger.info("purchase_recorded",
                    line_item_id=str(line_item.id),
                    ledger_entry_id=str(line_item.ledger_entry_id),
                    stop_id=str(line_item.stop_id) if line_item.stop_id else None,
                    store=store_name,
                    total_price=str(line_item.total_price))
        return line_item

    async def _add_to_stock_best_effort(
        self,
        line_item: LineItem,
        store_name: Optional[str],
        trip_id: Optional[UUID],
        sheet_id: Optional[UUID],
        db: AsyncSession,
    ) -> Optional[StockItem]:
        try:
            async with db.begin_nested():
                return await stock_service.create_item_from_line_item(
                    line_item, store_name, trip_id, db, sheet_id=sheet_id
                )
        except (StockError, SQLAlchemyError) as e:
            logger.warning("stock_item_failed",
                           line_item_id=str(line_item.id),
                           sheet_id=str(sheet_id) if sheet_id else None,
                           error=str(e))
            return None

    async def _update_catalog_best_effort(self, line_item: LineItem, tag_ids: List[UUID], db: AsyncSession) -> None:
        try:
            async with db.begin_nested():
                await catalog_service.upsert_brand_defaults(line_item, tag_ids, db)
        except SQLAlchemyError as e:
            logger.warning("catalog_update_failed",
                           line_item_id=str(line_item.id),
                           brand=line_item.brand,
                           error=str(e))

    async def update_line_item(
        self,
        line_item_id: UUID,
        household_id: UUID,
        changes: LineItemUpdate,
        db: AsyncSession,
    ) -> LineItem:
        """
        Edit a recorded purchase.

        Tags are replaced on the line item and its entry; a new total price
        becomes the entry amount; the brand's catalog defaults are refreshed.
        A usage_mode change is synced to every matching line item and stock
        item once the edit has committed.
        """
        line_item = await self.get_line_item(line_item_id, household_id, db)
        values = changes.model_dump(exclude_unset=True)
        tag_ids = values.pop("tag_ids", None)

        old_mode = line_item.usage_mode
        if "usage_mode" in values:
            values["usage_mode"] = values["usage_mode"].value

        async with unit_of_work(db, "update_line_item"):
            for field, value in values.items():
                setattr(line_item, field, value)
            await db.flush()

            entry = await ledger_service.get_entry(line_item.ledger_entry_id, db)
            entry_changes = {}
            if "total_price" in values:
                entry_changes["amount"] = values["total_price"]
            if "brand" in values or "item" in values:
                entry_changes["notes"] = f"Purchase: {line_item.brand} - {line_item.item}"
            if tag_ids is not None:
                entry_changes["tag_ids"] = tag_ids
                tags = await tag_service.resolve_tags(household_id, tag_ids, db)
                await tag_service.set_line_item_tags(line_item.id, tags, db)
            if entry_changes:
                await ledger_service.update_entry(entry, LedgerEntryUpdate(**entry_changes), db)

            current_tags = await tag_service.get_line_item_tag_ids(line_item.id, db)
            await self._update_catalog_best_effort(line_item, current_tags, db)

        new_mode = values.get("usage_mode")
        if new_mode is not None and new_mode != old_mode:
            await propagation_service.sync_usage_mode(
                household_id,
                line_item.brand,
                line_item.item,
                new_mode,
                db,
                exclude_line_item_id=line_item.id,
            )

        logger.info("line_item_updated",
                    line_item_id=str(line_item.id),
                    fields=sorted(values) + (["tag_ids"] if tag_ids is not None else []))
        return line_item

    async def add_line_items_to_stock(
        self,
        household_id: UUID,
        line_item_ids: List[UUID],
        db: AsyncSession,
        sheet_assignments: Optional[Dict[UUID, UUID]] = None,
    ) -> List[StockItem]:
        """
        Copy recorded purchases into stock. All or nothing: one failing item
        rolls the whole batch back and the StockError propagates.
        """
        sheet_assignments = sheet_assignments or {}
        created = []

        async with unit_of_work(db, "add_line_items_to_stock"):
            result = await db.execute(
                select(LineItem).where(
                    LineItem.id.in_(line_item_ids),
                    LineItem.household_id == household_id,
                )
            )
            found = {line_item.id: line_item for line_item in result.scalars().all()}

            for line_item_id in line_item_ids:
                line_item = found.get(line_item_id)
                if line_item is None:
                    raise NotFoundError("LineItem", line_item_id)

                stop = await db.get(Stop, line_item.stop_id) if line_item.stop_id else None
                store_name, trip_id = await self._store_context(stop, db)

                created.append(
                    await stock_service.create_item_from_line_item(
                        line_item,
                        store_name,
                        trip_id,
                        db,
                        sheet_id=sheet_assignments.get(line_item_id),
                    )
                )

        logger.info("line_items_added_to_stock", count=len(created))
        return created


# Singleton instance
purchase_service = PurchaseService()
