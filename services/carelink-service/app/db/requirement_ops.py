"""
CareLink Service — Requirement ledger

Owns donation categories, donation items (required_qty / fulfilled_qty) and
the deficit / surplus / fulfilled classification reported to the UI.
"""
import logging
import math
from collections.abc import Iterable

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.core.optimistic_lock import StaleDataError, with_optimistic_retry
from app.extraction.units import normalize_unit
from app.models.donation import (
    BatchStatus,
    Donation,
    DonationBatch,
    DonationCategory,
    DonationItem,
    Inventory,
)

logger = logging.getLogger(__name__)

STATUS_SURPLUS = "surplus"
STATUS_NEEDED = "needed"
STATUS_FULFILLED = "fulfilled"

ITEM_PATCH_FIELDS = ("category_id", "name", "unit", "required_qty", "is_active")


def derive_metrics(required_qty: float, fulfilled_qty: float) -> dict:
    """Deficit, surplus, fulfillment percentage (half-up) and status for one item."""
    deficit = max(0, required_qty - fulfilled_qty)
    surplus = max(0, fulfilled_qty - required_qty)
    fulfillment_pct = math.floor(fulfilled_qty / required_qty * 100 + 0.5) if required_qty > 0 else 0

    if surplus > 0:
        status = STATUS_SURPLUS
    elif deficit > 0:
        status = STATUS_NEEDED
    else:
        status = STATUS_FULFILLED

    return {
        "deficit": deficit,
        "surplus": surplus,
        "fulfillment_pct": fulfillment_pct,
        "status": status,
    }


# ─── Categories ───────────────────────────────────────────────────────────────

async def list_categories(db: AsyncSession) -> list[DonationCategory]:
    result = await db.execute(select(DonationCategory).order_by(DonationCategory.name))
    return list(result.scalars().all())


async def get_category(db: AsyncSession, category_id: str) -> DonationCategory:
    category = await db.get(DonationCategory, category_id)
    if category is None:
        raise NotFound("Category not found")
    return category


async def create_category(db: AsyncSession, name: str, description: str = "") -> DonationCategory:
    category = DonationCategory(name=name, description=description or "")
    db.add(category)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict(f"Category '{name}' already exists") from exc
    await db.refresh(category)
    return category


async def update_category(db: AsyncSession, category_id: str, name: str, description: str = "") -> DonationCategory:
    category = await get_category(db, category_id)
    category.name = name
    category.description = description or ""
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict(f"Category '{name}' already exists") from exc
    await db.refresh(category)
    return category


async def delete_category(db: AsyncSession, category_id: str) -> None:
    category = await get_category(db, category_id)
    in_use = await db.execute(select(func.count(DonationItem.id)).where(DonationItem.category_id == category_id))
    if in_use.scalar_one() > 0:
        raise Conflict("Category is still used by donation items")
    await db.delete(category)
    await db.commit()


# ─── Items ────────────────────────────────────────────────────────────────────

async def get_item(db: AsyncSession, item_id: str) -> DonationItem:
    result = await db.execute(
        select(DonationItem).where(DonationItem.id == item_id).execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFound("Donation item not found")
    return item


async def list_items(
    db: AsyncSession,
    category_id: str | None = None,
    active_only: bool = False,
) -> list[DonationItem]:
    query = select(DonationItem).order_by(DonationItem.name)
    if category_id is not None:
        query = query.where(DonationItem.category_id == category_id)
    if active_only:
        query = query.where(DonationItem.is_active.is_(True))
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def create_item(
    db: AsyncSession,
    category_id: str,
    name: str,
    unit: str,
    required_qty: float,
    is_active: bool = True,
    updated_by: str | None = None,
) -> DonationItem:
    """Create one requirement line together with its zeroed inventory row."""
    if required_qty < 0:
        raise ValidationError("Quantity must be non-negative")
    if await db.get(DonationCategory, category_id) is None:
        raise ValidationError("Invalid category ID")

    try:
        item = DonationItem(
            category_id=category_id,
            name=name,
            unit=normalize_unit(unit),
            required_qty=required_qty,
            fulfilled_qty=0,
            is_active=is_active,
        )
        db.add(item)
        await db.flush()
        db.add(Inventory(item_id=item.id, quantity_on_hand=0, updated_by=updated_by))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(item)
    logger.info("Donation item %s created (%s %s of %s)", item.id, required_qty, item.unit, name)
    return item


async def _resolve_categories(db: AsyncSession, names: Iterable[str]) -> dict[str, str]:
    """Map each category name to its id, creating the missing ones. Does not commit."""
    category_ids: dict[str, str] = {}
    for name in names:
        result = await db.execute(select(DonationCategory.id).where(DonationCategory.name == name))
        category_id = result.scalar_one_or_none()
        if category_id is None:
            category = DonationCategory(name=name, description="")
            db.add(category)
            await db.flush()
            category_id = category.id
        category_ids[name] = category_id
    return category_ids


@with_optimistic_retry()
async def bulk_create(
    db: AsyncSession,
    batch_title: str,
    uploader_id: str,
    items: list[dict],
) -> tuple[DonationBatch, list[DonationItem]]:
    """
    Publish reviewed extraction candidates as one batch.

    Each item is {name, quantity, unit, category}; categories are matched by
    exact name and created when missing. Everything happens in a single
    transaction: either the whole batch is visible or none of it is. Losing
    a race to create the same new category retries the whole publish.
    """
    if not items:
        raise ValidationError("At least one item is required")
    for entry in items:
        if not str(entry.get("name") or "").strip():
            raise ValidationError("Item name is required")
        if float(entry.get("quantity", 0)) < 0:
            raise ValidationError(f"Quantity for '{entry['name']}' must be non-negative")
        if not str(entry.get("category") or "").strip():
            raise ValidationError(f"Category for '{entry['name']}' is required")

    try:
        batch = DonationBatch(title=batch_title, uploaded_by=uploader_id, status=BatchStatus.PUBLISHED.value)
        db.add(batch)

        category_ids = await _resolve_categories(db, dict.fromkeys(entry["category"] for entry in items))
        await db.flush()
        created = [
            DonationItem(
                category_id=category_ids[entry["category"]],
                batch_id=batch.id,
                name=entry["name"].strip(),
                unit=normalize_unit(entry["unit"]),
                required_qty=float(entry["quantity"]),
                fulfilled_qty=0,
                is_active=True,
            )
            for entry in items
        ]
        db.add_all(created)
        await db.flush()

        db.add_all(Inventory(item_id=item.id, quantity_on_hand=0, updated_by=uploader_id) for item in created)
        await db.commit()
    except IntegrityError as exc:
        # Another publish created one of our new categories first
        await db.rollback()
        raise StaleDataError(f"Category created concurrently while publishing '{batch_title}'") from exc
    except Exception:
        await db.rollback()
        logger.exception("Bulk publish of batch '%s' failed; nothing was stored", batch_title)
        raise

    await db.refresh(batch)
    for item in created:
        await db.refresh(item)
    logger.info("Batch %s published with %d items", batch.id, len(created))
    return batch, created


async def update_item(db: AsyncSession, item_id: str, patch: dict) -> DonationItem:
    item = await get_item(db, item_id)
    values = {key: patch[key] for key in ITEM_PATCH_FIELDS if patch.get(key) is not None}

    if "required_qty" in values and values["required_qty"] < 0:
        raise ValidationError("Quantity must be non-negative")
    if "category_id" in values and await db.get(DonationCategory, values["category_id"]) is None:
        raise ValidationError("Invalid category ID")
    if "unit" in values:
        values["unit"] = normalize_unit(values["unit"])

    for key, value in values.items():
        setattr(item, key, value)
    if values:
        item.version_id += 1
        await db.commit()
        await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, item_id: str) -> None:
    """
    Remove a requirement line and its inventory row. Items that donations
    point at are kept; deactivate them instead.
    """
    item = await get_item(db, item_id)
    referenced = await db.execute(select(func.count(Donation.id)).where(Donation.item_id == item_id))
    if referenced.scalar_one() > 0:
        raise Conflict("Item has donations recorded against it; deactivate it instead")

    try:
        await db.execute(delete(Inventory).where(Inventory.item_id == item_id))
        await db.delete(item)
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    logger.info("Donation item %s deleted", item_id)


async def add_fulfilled(db: AsyncSession, item_id: str, quantity: float) -> bool:
    """
    Increment fulfilled_qty in SQL so concurrent verifications never lose an
    update. Returns False if the item no longer exists. Does not commit.
    """
    result = await db.execute(
        update(DonationItem)
        .where(DonationItem.id == item_id)
        .values(
            fulfilled_qty=DonationItem.fulfilled_qty + quantity,
            version_id=DonationItem.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def report(db: AsyncSession) -> dict:
    """Fulfillment report over active items, with per-status counts."""
    result = await db.execute(
        select(DonationItem, DonationCategory.name, Inventory.quantity_on_hand)
        .join(DonationCategory, DonationCategory.id == DonationItem.category_id, isouter=True)
        .join(Inventory, Inventory.item_id == DonationItem.id, isouter=True)
        .where(DonationItem.is_active.is_(True))
        .order_by(DonationItem.name)
        .execution_options(populate_existing=True)
    )

    rows = []
    for item, category_name, on_hand in result.all():
        rows.append({
            "id": item.id,
            "name": item.name,
            "category": category_name,
            "unit": item.unit,
            "required_qty": item.required_qty,
            "fulfilled_qty": item.fulfilled_qty,
            "quantity_on_hand": on_hand or 0,
            **derive_metrics(item.required_qty, item.fulfilled_qty),
        })

    return {
        "report": rows,
        "summary": {
            "total_items": len(rows),
            STATUS_FULFILLED: sum(1 for r in rows if r["status"] == STATUS_FULFILLED),
            STATUS_NEEDED: sum(1 for r in rows if r["status"] == STATUS_NEEDED),
            STATUS_SURPLUS: sum(1 for r in rows if r["status"] == STATUS_SURPLUS),
        },
    }
