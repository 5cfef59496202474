"""
Scheduler Module - calendar tasks bound to shopping trips
"""

from packages.domain.scheduler.scheduler_service import SchedulerService, scheduler_service
from packages.domain.scheduler.schemas import TaskCreate, TaskOut, TaskStatus

__all__ = [
    'SchedulerService',
    'scheduler_service',
    'TaskCreate',
    'TaskOut',
    'TaskStatus',
]
