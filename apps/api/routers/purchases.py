"""
Purchases API Router
Records purchases, edits and deletes them, and edits items from a store's item list
"""
from typing import List, Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from apps.api.dependencies import RequestContext, get_request_context
from packages.common.database import get_db_session
from packages.common.schemas.purchase import (
    ItemSource,
    LineItemOut,
    LineItemUpdate,
    PurchaseDetails,
    PurchaseInput,
    StoreItemUpdate,
)
from packages.domain.catalog import catalog_service
from packages.domain.shopping import deletion_service, propagation_service, purchase_service
from packages.domain.shopping.schemas import StockAssignment
from packages.domain.stock.schemas import StockItemOut

logger = structlog.get_logger()
router = APIRouter()


@router.post("/purchases", response_model=LineItemOut, status_code=status.HTTP_201_CREATED)
async def record_purchase(
    body: PurchaseDetails,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """
    Record one purchase.

    Creates the stop/trip if needed, posts the ledger entry, adds the item
    to stock and refreshes the brand's catalog defaults.
    """
    data = PurchaseInput(household_id=ctx.household_id, user_id=ctx.user_id, **body.model_dump())
    return await purchase_service.record_purchase(data, db)


@router.patch("/purchases/{line_item_id}", response_model=LineItemOut)
async def update_purchase(
    line_item_id: UUID,
    changes: LineItemUpdate,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    return await purchase_service.update_line_item(line_item_id, ctx.household_id, changes, db)


@router.delete("/purchases/{line_item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_purchase(
    line_item_id: UUID,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    await deletion_service.delete_line_item(line_item_id, ctx.household_id, db)


@router.post("/purchases/stock", response_model=List[StockItemOut], status_code=status.HTTP_201_CREATED)
async def add_purchases_to_stock(
    body: StockAssignment,
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Copy purchases into stock sheets (all or nothing)"""
    return await purchase_service.add_line_items_to_stock(
        ctx.household_id, body.line_item_ids, db, sheet_assignments=body.sheet_assignments
    )


@router.patch("/stores/{store_id}/items/{item_id}")
async def update_store_item(
    store_id: UUID,
    item_id: UUID,
    changes: StoreItemUpdate,
    source: ItemSource = Query(..., description="manual (stock item) or receipt (line item)"),
    propagate: bool = Query(False, description="Carry brand/unit/price to sibling items"),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    row = await propagation_service.update_store_item(
        ctx.household_id, store_id, item_id, source, changes, db, propagate=propagate
    )
    if source == ItemSource.RECEIPT:
        return LineItemOut.model_validate(row)
    return StockItemOut.model_validate(row)


@router.get("/purchases/suggestions")
async def suggest_for_brand(
    brand: str = Query(..., min_length=1),
    store_id: Optional[UUID] = Query(None),
    ctx: RequestContext = Depends(get_request_context),
    db: AsyncSession = Depends(get_db_session),
):
    """Learned defaults and recent purchases for a brand"""
    suggestion = await catalog_service.suggest_for_brand(ctx.household_id, brand, db, store_id=store_id)
    entry = suggestion["brand"]
    return {
        "brand": None if entry is None else {
            "name": entry.name,
            "default_item": entry.default_item,
            "default_unit_measurement": entry.default_unit_measurement,
            "default_count_unit": entry.default_count_unit,
            "default_quantity_per_count": entry.default_quantity_per_count,
            "default_tags": entry.default_tags,
        },
        "recent_purchases": [LineItemOut.model_validate(li) for li in suggestion["recent_purchases"]],
    }
