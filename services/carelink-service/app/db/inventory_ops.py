"""
CareLink Service — Inventory ledger
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFound, ValidationError
from app.models.donation import DonationCategory, DonationItem, Inventory

logger = logging.getLogger(__name__)


async def get_inventory(db: AsyncSession, item_id: str) -> Inventory:
    result = await db.execute(
        select(Inventory).where(Inventory.item_id == item_id).execution_options(populate_existing=True)
    )
    inventory = result.scalar_one_or_none()
    if inventory is None:
        raise NotFound("Inventory record not found")
    return inventory


async def list_inventory(db: AsyncSession) -> list[dict]:
    """Every inventory row joined with its item and category, most recently touched first."""
    result = await db.execute(
        select(Inventory, DonationItem, DonationCategory.name)
        .join(DonationItem, DonationItem.id == Inventory.item_id)
        .join(DonationCategory, DonationCategory.id == DonationItem.category_id, isouter=True)
        .order_by(Inventory.updated_at.desc(), DonationItem.name)
        .execution_options(populate_existing=True)
    )
    return [
        {
            "id": inventory.id,
            "item_id": inventory.item_id,
            "quantity_on_hand": inventory.quantity_on_hand,
            "last_restocked_at": inventory.last_restocked_at,
            "updated_by": inventory.updated_by,
            "item_name": item.name,
            "unit": item.unit,
            "category": category_name,
            "required_qty": item.required_qty,
            "fulfilled_qty": item.fulfilled_qty,
            "is_active": item.is_active,
        }
        for inventory, item, category_name in result.all()
    ]


async def set_quantity_on_hand(db: AsyncSession, item_id: str, quantity: float, user_id: str) -> Inventory:
    """Manual admin correction. Overwrites the count; last_restocked_at only moves on restock."""
    if quantity < 0:
        raise ValidationError("Quantity must be non-negative")

    try:
        result = await db.execute(
            update(Inventory)
            .where(Inventory.item_id == item_id)
            .values(
                quantity_on_hand=quantity,
                updated_by=user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Inventory record not found")
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Inventory for item %s set to %s by %s", item_id, quantity, user_id)
    return await get_inventory(db, item_id)


async def restock(db: AsyncSession, item_id: str, quantity: float, user_id: str | None) -> bool:
    """
    Add `quantity` to quantity_on_hand in SQL. Returns False when the item has
    no inventory row. Does not commit.
    """
    result = await db.execute(
        update(Inventory)
        .where(Inventory.item_id == item_id)
        .values(
            quantity_on_hand=Inventory.quantity_on_hand + quantity,
            last_restocked_at=datetime.now(tz=timezone.utc),
            updated_by=user_id,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0
