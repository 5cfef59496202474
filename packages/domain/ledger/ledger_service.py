"""
Ledger Service - income/expense sources and entries

Every recorded purchase produces exactly one expense entry, filed under a
source named after the store. The entry carries a back-reference to the
line item that produced it; the line item carries the entry id.

Methods flush but never commit. The caller owns the transaction.
"""
from calendar import monthrange
from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import NotFoundError
from packages.common.models import LedgerEntry, LedgerSource
from packages.domain.ledger.schemas import (
    EntryType,
    LedgerEntryCreate,
    LedgerEntryUpdate,
    LedgerSourceCreate,
    MonthlySummary,
)
from packages.domain.tags.tag_service import tag_service

logger = structlog.get_logger()


class LedgerService:
    """Sources and entries of the household ledger"""

    # --- Sources ---

    async def create_source(self, data: LedgerSourceCreate, db: AsyncSession) -> LedgerSource:
        source = LedgerSource(
            household_id=data.household_id,
            user_id=data.user_id,
            name=data.name,
            type=data.type.value,
            amount=data.amount,
            is_recurring=data.is_recurring,
        )
        db.add(source)
        await db.flush()

        logger.info("ledger_source_created",
                    source_id=str(source.id),
                    name=source.name,
                    type=source.type)
        return source

    async def get_or_create_source_for_store(
        self,
        household_id: UUID,
        user_id: UUID,
        store_name: Optional[str],
        db: AsyncSession,
    ) -> Optional[LedgerSource]:
        """
        Find the expense source named after a store, creating it if missing.

        The lookup is an exact, case-sensitive match on name and type.
        Two concurrent first purchases at a new store can both miss and both
        insert; the duplicate source is harmless and left alone.

        Returns None when there is no store name.
        """
        if not store_name:
            return None

        result = await db.execute(
            select(LedgerSource)
            .where(
                LedgerSource.household_id == household_id,
                LedgerSource.name == store_name,
                LedgerSource.type == EntryType.EXPENSE.value,
            )
            .order_by(LedgerSource.created_at)
            .limit(1)
        )
        source = result.scalar_one_or_none()

        if source:
            logger.debug("ledger_source_found", source_id=str(source.id), name=store_name)
            return source

        return await self.create_source(
            LedgerSourceCreate(
                household_id=household_id,
                user_id=user_id,
                name=store_name,
                type=EntryType.EXPENSE,
                amount=Decimal("0"),
            ),
            db,
        )

    # --- Entries ---

    async def get_entry(self, entry_id: UUID, db: AsyncSession) -> LedgerEntry:
        entry = await db.get(LedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError("LedgerEntry", entry_id)
        return entry

    async def create_entry(self, data: LedgerEntryCreate, db: AsyncSession) -> LedgerEntry:
        entry = LedgerEntry(
            household_id=data.household_id,
            user_id=data.user_id,
            date=data.date,
            amount=data.amount,
            type=data.type.value,
            notes=data.notes,
            source_id=data.source_id,
            line_item_id=data.line_item_id,
        )
        db.add(entry)
        await db.flush()

        if data.tag_ids:
            tags = await tag_service.resolve_tags(data.household_id, data.tag_ids, db)
            await tag_service.set_ledger_entry_tags(entry.id, tags, db)

        logger.debug("ledger_entry_created",
                     entry_id=str(entry.id),
                     amount=str(entry.amount),
                     date=entry.date.isoformat())
        return entry

    async def update_entry(
        self,
        entry: LedgerEntry,
        changes: LedgerEntryUpdate,
        db: AsyncSession,
    ) -> LedgerEntry:
        values = changes.model_dump(exclude_unset=True)
        tag_ids = values.pop("tag_ids", None)

        for field, value in values.items():
            if isinstance(value, EntryType):
                value = value.value
            setattr(entry, field, value)
        await db.flush()

        if tag_ids is not None:
            tags = await tag_service.resolve_tags(entry.household_id, tag_ids, db)
            await tag_service.set_ledger_entry_tags(entry.id, tags, db)

        logger.debug("ledger_entry_updated",
                     entry_id=str(entry.id),
                     fields=sorted(values))
        return entry

    async def list_entries(
        self,
        household_id: UUID,
        db: AsyncSession,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        exclude_purchases: bool = False,
    ) -> List[LedgerEntry]:
        query = select(LedgerEntry).where(LedgerEntry.household_id == household_id)
        if start_date:
            query = query.where(LedgerEntry.date >= start_date)
        if end_date:
            query = query.where(LedgerEntry.date <= end_date)
        if exclude_purchases:
            query = query.where(LedgerEntry.line_item_id.is_(None))

        result = await db.execute(query.order_by(LedgerEntry.date.desc()))
        return list(result.scalars().all())

    async def get_monthly_summary(
        self,
        household_id: UUID,
        year: int,
        month: int,
        db: AsyncSession,
    ) -> MonthlySummary:
        """Sum income and expense entries for one calendar month"""
        first = date(year, month, 1)
        last = date(year, month, monthrange(year, month)[1])

        result = await db.execute(
            select(LedgerEntry.type, func.coalesce(func.sum(LedgerEntry.amount), 0))
            .where(
                LedgerEntry.household_id == household_id,
                LedgerEntry.date >= first,
                LedgerEntry.date <= last,
            )
            .group_by(LedgerEntry.type)
        )
        totals = {row[0]: Decimal(str(row[1])) for row in result.all()}

        income = totals.get(EntryType.INCOME.value, Decimal("0"))
        expense = totals.get(EntryType.EXPENSE.value, Decimal("0"))
        return MonthlySummary(year=year, month=month, income=income, expense=expense, net=income - expense)


# Singleton instance
ledger_service = LedgerService()
