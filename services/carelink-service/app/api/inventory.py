"""
CareLink Service — Inventory and fulfillment report routes
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import inventory_ops, requirement_ops
from app.db.database import get_db
from app.schemas.donation import InventoryResponse, InventoryRow, InventoryUpdate, ReportResponse
from app.schemas.types import EntityId

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


@router.get("", response_model=list[InventoryRow])
async def list_inventory(admin: CurrentUser = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await inventory_ops.list_inventory(db)


@router.get("/report", response_model=ReportResponse)
async def fulfillment_report(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Deficit / surplus per active item. Field names are consumed by the dashboard as-is."""
    return await requirement_ops.report(db)


@router.put("/{item_id}", response_model=InventoryResponse)
async def set_quantity_on_hand(
    item_id: EntityId,
    payload: InventoryUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await inventory_ops.set_quantity_on_hand(db, item_id, payload.quantity_on_hand, user_id=admin.id)
