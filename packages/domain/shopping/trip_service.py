"""
Trip Service - shopping trips and their ordered stops

Trips are consolidated per day: a purchase dated 2024-03-05 lands in the
household's existing trip whose trip_start falls on that UTC calendar day,
and a new trip is only started when there is none.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.database import unit_of_work
from packages.common.errors import NotFoundError, ValidationError
from packages.common.models import LedgerEntry, LineItem, SchedulerTask, ShoppingTrip, Stop, Store
from packages.common.schemas.purchase import NewStop
from packages.domain.shopping.schemas import StopCreate, TripCreate
from packages.domain.shopping.store_service import store_service

logger = structlog.get_logger()


def _day_bounds(day: date):
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


class TripService:
    """Trips and stops. Methods flush but never commit, except update_trip_date."""

    # --- Trips ---

    async def create_trip(self, data: TripCreate, db: AsyncSession) -> ShoppingTrip:
        trip = ShoppingTrip(**data.model_dump())
        db.add(trip)
        await db.flush()
        logger.info("trip_created", trip_id=str(trip.id), trip_start=trip.trip_start.isoformat())
        return trip

    async def get_trip(self, trip_id: UUID, household_id: UUID, db: AsyncSession) -> ShoppingTrip:
        trip = await db.get(ShoppingTrip, trip_id)
        if trip is None or trip.household_id != household_id:
            raise NotFoundError("ShoppingTrip", trip_id)
        return trip

    async def list_trips(
        self,
        household_id: UUID,
        db: AsyncSession,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[ShoppingTrip]:
        """Trips whose start falls within [start, end] (inclusive days), newest first"""
        query = select(ShoppingTrip).where(ShoppingTrip.household_id == household_id)
        if start:
            query = query.where(ShoppingTrip.trip_start >= _day_bounds(start)[0])
        if end:
            query = query.where(ShoppingTrip.trip_start < _day_bounds(end)[1])

        result = await db.execute(query.order_by(ShoppingTrip.trip_start.desc()))
        return list(result.scalars().all())

    async def find_or_create_trip_for_date(
        self,
        household_id: UUID,
        user_id: UUID,
        purchase_date: date,
        db: AsyncSession,
    ) -> ShoppingTrip:
        day_start, day_end = _day_bounds(purchase_date)

        result = await db.execute(
            select(ShoppingTrip)
            .where(
                ShoppingTrip.household_id == household_id,
                ShoppingTrip.trip_start >= day_start,
                ShoppingTrip.trip_start < day_end,
            )
            .order_by(ShoppingTrip.trip_start)
            .limit(1)
        )
        trip = result.scalar_one_or_none()
        if trip:
            logger.debug("trip_reused", trip_id=str(trip.id), date=purchase_date.isoformat())
            return trip

        return await self.create_trip(
            TripCreate(household_id=household_id, user_id=user_id, trip_start=day_start),
            db,
        )

    async def update_trip_date(
        self,
        trip_id: UUID,
        household_id: UUID,
        new_date: date,
        db: AsyncSession,
    ) -> ShoppingTrip:
        """
        Move a trip to another day. The ledger entries of every purchase on
        the trip move with it, in the same transaction.
        """
        trip = await self.get_trip(trip_id, household_id, db)

        async with unit_of_work(db, "update_trip_date"):
            old_start = trip.trip_start
            start_time = old_start.time() if old_start else time.min
            trip.trip_start = datetime.combine(new_date, start_time, tzinfo=timezone.utc)
            if trip.trip_end is not None and old_start is not None:
                trip.trip_end = trip.trip_start + (trip.trip_end - old_start)

            entry_ids = (
                select(LineItem.ledger_entry_id)
                .join(Stop, LineItem.stop_id == Stop.id)
                .where(Stop.trip_id == trip_id)
            )
            result = await db.execute(
                update(LedgerEntry)
                .where(LedgerEntry.id.in_(entry_ids))
                .values(date=new_date)
                .execution_options(synchronize_session=False)
            )
            await db.execute(
                update(SchedulerTask)
                .where(SchedulerTask.trip_id == trip_id)
                .values(date=new_date)
                .execution_options(synchronize_session=False)
            )
            await db.flush()

        logger.info("trip_date_updated",
                    trip_id=str(trip_id),
                    date=new_date.isoformat(),
                    entries_moved=result.rowcount)
        return trip

    # --- Stops ---

    async def get_stop(self, stop_id: UUID, household_id: UUID, db: AsyncSession) -> Stop:
        result = await db.execute(
            select(Stop)
            .join(ShoppingTrip, Stop.trip_id == ShoppingTrip.id)
            .where(Stop.id == stop_id, ShoppingTrip.household_id == household_id)
        )
        stop = result.scalar_one_or_none()
        if stop is None:
            raise NotFoundError("Stop", stop_id)
        return stop

    async def list_stops(self, trip_id: UUID, db: AsyncSession) -> List[Stop]:
        result = await db.execute(
            select(Stop).where(Stop.trip_id == trip_id).order_by(Stop.position)
        )
        return list(result.scalars().all())

    async def create_stop(self, data: StopCreate, db: AsyncSession) -> Stop:
        """Append a stop to the trip (position = number of stops + 1)"""
        result = await db.execute(
            select(func.count()).select_from(Stop).where(Stop.trip_id == data.trip_id)
        )
        position = result.scalar_one() + 1

        stop = Stop(**data.model_dump(), position=position)
        db.add(stop)
        await db.flush()

        logger.info("stop_created",
                    stop_id=str(stop.id),
                    trip_id=str(stop.trip_id),
                    store_name=stop.store_name,
                    position=position)
        return stop

    async def resolve_stop(
        self,
        household_id: UUID,
        user_id: UUID,
        stop_id: Optional[UUID],
        new_stop: Optional[NewStop],
        purchase_date: date,
        db: AsyncSession,
    ) -> Optional[Stop]:
        """
        Find the stop a purchase belongs to, creating it (and its trip) if needed.

        Returns None when the purchase names neither a stop nor a new stop.
        A stop, trip or store id that is not this household's raises NotFoundError.
        """
        if stop_id is not None:
            return await self.get_stop(stop_id, household_id, db)

        if new_stop is None:
            return None

        store = None
        if new_stop.store_id is not None:
            store = await store_service.get_store(new_stop.store_id, household_id, db)
        if store is None:
            store = await store_service.find_store_by_number(household_id, new_stop.store_number, db)
        if store is None:
            store = await store_service.find_store_by_name(household_id, new_stop.store_name, db)

        if store is None and not (new_stop.store_name and new_stop.store_name.strip()):
            raise ValidationError("New stop needs a known store or a store name")

        if new_stop.trip_id is not None:
            trip = await self.get_trip(new_stop.trip_id, household_id, db)
        else:
            trip = await self.find_or_create_trip_for_date(household_id, user_id, purchase_date, db)

        return await self.create_stop(
            StopCreate(
                trip_id=trip.id,
                store_id=store.id if store else None,
                store_name=store.name if store else new_stop.store_name.strip(),
                store_address=new_stop.store_address or (store.address if store else None),
                notes=new_stop.notes,
            ),
            db,
        )


# Singleton instance
trip_service = TripService()
