"""
Deletion Service - removing purchases, stops and trips without dangling references

| Deleted   | Deleted with it                  | Kept, reference cleared                        |
|-----------|----------------------------------|------------------------------------------------|
| line item | its ledger entry, tag links      | stock_items.purchase_id                        |
| stop      | its line items and their entries | stock_items.stop_id / purchase_id              |
| trip      | stops, line items, entries       | scheduler_tasks.trip_id, stock_items.trip_id.. |

References are cleared before rows are deleted. The line item / ledger
entry cycle is broken by clearing ledger_entries.line_item_id first.

delete_* methods commit (one transaction per deleted root); the *_rows
variants only write, for callers that own a larger transaction.
"""
from typing import List
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.database import unit_of_work
from packages.common.errors import NotFoundError
from packages.common.models import LedgerEntry, LineItem, SchedulerTask, ShoppingTrip, StockItem, Stop
from packages.domain.shopping.trip_service import trip_service
from packages.domain.tags.tag_service import tag_service

logger = structlog.get_logger()


class DeletionService:
    """Cascading deletes for the trip aggregate"""

    async def _delete_line_item_rows(self, line_item_ids: List[UUID], db: AsyncSession) -> int:
        if not line_item_ids:
            return 0

        result = await db.execute(
            select(LineItem.ledger_entry_id).where(LineItem.id.in_(line_item_ids))
        )
        entry_ids = list(result.scalars().all())

        await db.execute(
            update(StockItem)
            .where(StockItem.purchase_id.in_(line_item_ids))
            .values(purchase_id=None)
            .execution_options(synchronize_session=False)
        )
        await db.execute(
            update(LedgerEntry)
            .where(LedgerEntry.id.in_(entry_ids))
            .values(line_item_id=None)
            .execution_options(synchronize_session=False)
        )

        await tag_service.clear_line_item_tags(line_item_ids, db)
        await tag_service.clear_ledger_entry_tags(entry_ids, db)

        await db.execute(
            delete(LineItem)
            .where(LineItem.id.in_(line_item_ids))
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            delete(LedgerEntry)
            .where(LedgerEntry.id.in_(entry_ids))
            .execution_options(synchronize_session="fetch")
        )
        return len(line_item_ids)

    async def _delete_stop_rows(self, stop_ids: List[UUID], db: AsyncSession) -> int:
        if not stop_ids:
            return 0

        await db.execute(
            update(StockItem)
            .where(StockItem.stop_id.in_(stop_ids))
            .values(stop_id=None)
            .execution_options(synchronize_session=False)
        )

        result = await db.execute(select(LineItem.id).where(LineItem.stop_id.in_(stop_ids)))
        line_count = await self._delete_line_item_rows(list(result.scalars().all()), db)

        await db.execute(
            delete(Stop)
            .where(Stop.id.in_(stop_ids))
            .execution_options(synchronize_session="fetch")
        )
        return line_count

    async def delete_trip_rows(self, trip_id: UUID, db: AsyncSession) -> None:
        """Delete a trip's subtree without committing"""
        await db.execute(
            update(SchedulerTask)
            .where(SchedulerTask.trip_id == trip_id)
            .values(trip_id=None)
            .execution_options(synchronize_session="fetch")
        )
        await db.execute(
            update(StockItem)
            .where(StockItem.trip_id == trip_id)
            .values(trip_id=None)
            .execution_options(synchronize_session=False)
        )

        result = await db.execute(select(Stop.id).where(Stop.trip_id == trip_id))
        stop_ids = list(result.scalars().all())
        line_count = await self._delete_stop_rows(stop_ids, db)

        await db.execute(
            delete(ShoppingTrip)
            .where(ShoppingTrip.id == trip_id)
            .execution_options(synchronize_session="fetch")
        )

        logger.info("trip_rows_deleted",
                    trip_id=str(trip_id),
                    stops=len(stop_ids),
                    line_items=line_count)

    async def delete_line_item(self, line_item_id: UUID, household_id: UUID, db: AsyncSession) -> None:
        line_item = await db.get(LineItem, line_item_id)
        if line_item is None or line_item.household_id != household_id:
            raise NotFoundError("LineItem", line_item_id)

        async with unit_of_work(db, "delete_line_item"):
            await self._delete_line_item_rows([line_item_id], db)

        logger.info("line_item_deleted", line_item_id=str(line_item_id))

    async def delete_stop(self, stop_id: UUID, household_id: UUID, db: AsyncSession) -> None:
        await trip_service.get_stop(stop_id, household_id, db)

        async with unit_of_work(db, "delete_stop"):
            line_count = await self._delete_stop_rows([stop_id], db)

        logger.info("stop_deleted", stop_id=str(stop_id), line_items=line_count)

    async def delete_trip(self, trip_id: UUID, household_id: UUID, db: AsyncSession) -> None:
        await trip_service.get_trip(trip_id, household_id, db)

        async with unit_of_work(db, "delete_trip"):
            await self.delete_trip_rows(trip_id, db)


# Singleton instance
deletion_service = DeletionService()
