"""
Scheduler Service - calendar tasks, including the one task that stands for a shopping trip

A trip gets a task the first time a purchase lands in it. Deleting that task
deletes the trip it owns; deleting the trip only unlinks the task.
"""
from datetime import date
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.config import get_settings
from packages.common.database import unit_of_work
from packages.common.errors import NotFoundError, SchedulerError, TransactionError
from packages.common.models import SchedulerTask
from packages.domain.scheduler.schemas import TaskCreate

logger = structlog.get_logger()


class SchedulerService:
    """Task lookups and the trip-bound task lifecycle"""

    def __init__(self):
        self.settings = get_settings()

    async def create_task(self, data: TaskCreate, db: AsyncSession) -> SchedulerTask:
        task = SchedulerTask(
            household_id=data.household_id,
            user_id=data.user_id,
            title=data.title,
            date=data.date,
            status=data.status.value,
            trip_id=data.trip_id,
        )
        db.add(task)
        await db.flush()

        logger.info("scheduler_task_created",
                    task_id=str(task.id),
                    trip_id=str(task.trip_id) if task.trip_id else None)
        return task

    async def get_task(self, task_id: UUID, household_id: UUID, db: AsyncSession) -> SchedulerTask:
        task = await db.get(SchedulerTask, task_id)
        if task is None or task.household_id != household_id:
            raise NotFoundError("SchedulerTask", task_id)
        return task

    async def get_task_for_trip(self, trip_id: UUID, db: AsyncSession) -> Optional[SchedulerTask]:
        result = await db.execute(
            select(SchedulerTask).where(SchedulerTask.trip_id == trip_id).limit(1)
        )
        return result.scalar_one_or_none()

    async def ensure_task_for_trip(
        self,
        trip_id: UUID,
        household_id: UUID,
        user_id: UUID,
        task_date: Optional[date],
        db: AsyncSession,
    ) -> SchedulerTask:
        """
        Create the trip's task unless one exists already. Commits.

        Raises:
            SchedulerError: the task could not be looked up or written
        """
        try:
            async with unit_of_work(db, "ensure_task_for_trip"):
                task = await self.get_task_for_trip(trip_id, db)
                if task is not None:
                    return task
                task = await self.create_task(
                    TaskCreate(
                        household_id=household_id,
                        user_id=user_id,
                        title=self.settings.trip_task_title,
                        date=task_date,
                        trip_id=trip_id,
                    ),
                    db,
                )
        except (TransactionError, SQLAlchemyError) as e:
            raise SchedulerError(f"Could not create task for trip {trip_id}: {e}") from e

        return task

    async def delete_task(self, task_id: UUID, household_id: UUID, db: AsyncSession) -> None:
        """
        Delete a task. A task bound to a trip takes the whole trip with it
        (stops, line items, ledger entries) in the same transaction.
        """
        # Imported here: the shopping package imports this module
        from packages.domain.shopping.deletion_service import deletion_service

        task = await self.get_task(task_id, household_id, db)
        trip_id = task.trip_id

        async with unit_of_work(db, "delete_task"):
            if trip_id is not None:
                await deletion_service.delete_trip_rows(trip_id, db)
            await db.delete(task)
            await db.flush()

        logger.info("scheduler_task_deleted",
                    task_id=str(task_id),
                    trip_id=str(trip_id) if trip_id else None)


# Singleton instance
scheduler_service = SchedulerService()
