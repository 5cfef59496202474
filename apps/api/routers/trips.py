"""
Trips API Router
Lists and moves shopping trips; deletes trips, stops and trip-bound tasks
"""
from datetime import date
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.dependencies import RequestContext, get_request_context
from packages.common.database import get_db_session
from packages.domain.scheduler import scheduler_service
from packages.domain.shopping import deletion_service, trip_service
from packages.domain.shopping.schemas import StopOut, TripDateUpdate, TripOut

logger = structlog.get_logger()
router = APIRouter()


async def _trip_out(trip, db: AsyncSession) -> TripOut:
    stops = await trip_service.list_stops(trip.id, db)
    return TripOut(
        id=trip.id,
        household_id=trip.household_id,
        driver_name=trip.driver_name,
        trip_start=trip.trip_start,
        trip_end=trip.trip_end,
        notes=trip.notes,
        stops=[StopOut.model_validate(stop) for stop in stops],
    )


@router.get("/trips", response_model=List[TripOut])
async def list_trips(
    start: Optional[date] = Query(None, description="First day (inclusive)"),
    end: Optional[date] = Query(None, description="Last day (inclusive)"),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    trips = await trip_service.list_trips(ctx.household_id, db, start=start, end=end)
    return [await _trip_out(trip, db) for trip in trips]


@router.patch("/trips/{trip_id}/date", response_model=TripOut)
async def move_trip(
    trip_id: UUID,
    body: TripDateUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Move a trip to another day; its ledger entries follow"""
    trip = await trip_service.update_trip_date(trip_id, ctx.household_id, body.date, db)
    return await _trip_out(trip, db)


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    await deletion_service.delete_trip(trip_id, ctx.household_id, db)


@router.delete("/stops/{stop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_stop(
    stop_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    await deletion_service.delete_stop(stop_id, ctx.household_id, db)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Delete a task; a trip-bound task takes its trip with it"""
    await scheduler_service.delete_task(task_id, ctx.household_id, db)
