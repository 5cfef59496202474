"""
Learning API Router
Corrections for raw receipt text and per-store tax indicator meanings
"""
from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.dependencies import RequestContext, get_request_context
from packages.common.database import get_db_session
from packages.domain.corrections import (
    CorrectionFields,
    CorrectionOut,
    TaxMeaningInput,
    TaxRuleOut,
    correction_service,
)

logger = structlog.get_logger()
router = APIRouter()


class CorrectionRequest(CorrectionFields):
    raw_text: str = Field(..., min_length=1)


@router.put("/corrections", response_model=CorrectionOut)
async def record_correction(
    body: CorrectionRequest,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    fields = CorrectionFields(**body.model_dump(exclude={"raw_text"}))
    return await correction_service.record_correction(ctx.household_id, body.raw_text, fields, db)


@router.get("/corrections", response_model=CorrectionOut)
async def get_correction(
    raw_text: str = Query(..., min_length=1),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    correction = await correction_service.get_correction(ctx.household_id, raw_text, db)
    if correction is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No correction learned")
    return correction


@router.put("/tax-rules", response_model=TaxRuleOut)
async def record_tax_meaning(
    body: TaxMeaningInput,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    return await correction_service.record_tax_meaning(ctx.household_id, body, db)


@router.get("/tax-rules", response_model=List[TaxRuleOut])
async def list_tax_meanings(
    store_name: str = Query(..., min_length=1),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    return await correction_service.list_tax_meanings(ctx.household_id, store_name, db)
