"""
Request context shared by the routers

Authentication happens upstream; the caller's household and user arrive as headers.
"""
from uuid import UUID

from fastapi import Header
from pydantic import BaseModel


class RequestContext(BaseModel):
    household_id: UUID
    user_id: UUID


async def get_request_context(
    x_household_id: UUID = Header(..., alias="X-Household-Id"),
    x_user_id: UUID = Header(..., alias="X-User-Id"),
) -> RequestContext:
    return RequestContext(household_id=x_household_id, user_id=x_user_id)
