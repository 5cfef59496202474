"""
Data schemas for scheduler tasks
"""
from datetime import date as date_type
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class TaskCreate(BaseModel):
    household_id: UUID
    user_id: UUID
    title: str = Field(..., min_length=1)
    date: Optional[date_type] = None
    status: TaskStatus = TaskStatus.NOT_STARTED
    trip_id: Optional[UUID] = Field(None, description="Shopping trip this task stands for")


class TaskOut(BaseModel):
    id: UUID
    household_id: UUID
    title: str
    date: Optional[date_type] = None
    status: TaskStatus
    trip_id: Optional[UUID] = None

    class Config:
        from_attributes = True
