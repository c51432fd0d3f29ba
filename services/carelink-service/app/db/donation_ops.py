"""
CareLink Service — Donation pledge workflow

    pledged ──► verified   (exactly once)

Verification is a compare-and-set on status='pledged'. The status flip, the
fulfilled_qty increment and the inventory increment commit together; the
increments are SQL expressions so parallel verifications of different
pledges against the same item never lose an update.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Conflict, NotFound, ValidationError
from app.core.optimistic_lock import StaleDataError, with_optimistic_retry
from app.db.inventory_ops import restock
from app.db.requirement_ops import add_fulfilled
from app.models.donation import Donation, DonationItem, DonationStatus

logger = logging.getLogger(__name__)


async def get_donation(db: AsyncSession, donation_id: str) -> Donation:
    result = await db.execute(
        select(Donation).where(Donation.id == donation_id).execution_options(populate_existing=True)
    )
    donation = result.scalar_one_or_none()
    if donation is None:
        raise NotFound("Donation not found")
    return donation


async def list_donations(
    db: AsyncSession,
    user_id: str | None = None,
    status: str | None = None,
    item_id: str | None = None,
) -> list[Donation]:
    query = select(Donation).order_by(Donation.created_at.desc())
    if user_id is not None:
        query = query.where(Donation.user_id == user_id)
    if status is not None:
        query = query.where(Donation.status == status)
    if item_id is not None:
        query = query.where(Donation.item_id == item_id)
    result = await db.execute(query.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def create_donation(
    db: AsyncSession,
    user_id: str,
    item_id: str,
    quantity: float,
    notes: str | None = None,
) -> Donation:
    """Record a pledge. Nothing in the ledgers moves until an admin verifies it."""
    if quantity <= 0:
        raise ValidationError("Quantity must be positive")

    item = await db.get(DonationItem, item_id)
    if item is None:
        raise NotFound("Donation item not found")
    if not item.is_active:
        raise Conflict("This item is no longer accepting donations")

    donation = Donation(
        user_id=user_id,
        item_id=item_id,
        quantity=quantity,
        status=DonationStatus.PLEDGED.value,
        notes=notes or None,
    )
    db.add(donation)
    await db.commit()
    await db.refresh(donation)
    logger.info("Donation %s pledged: %s of item %s by user %s", donation.id, quantity, item_id, user_id)
    return donation


@with_optimistic_retry()
async def verify_donation(db: AsyncSession, donation_id: str, verifier_id: str) -> Donation:
    try:
        donation = await get_donation(db, donation_id)
        if donation.status == DonationStatus.VERIFIED.value:
            raise Conflict("Donation already verified")

        result = await db.execute(
            update(Donation)
            .where(Donation.id == donation_id, Donation.status == DonationStatus.PLEDGED.value)
            .values(
                status=DonationStatus.VERIFIED.value,
                verified_by=verifier_id,
                verified_at=datetime.now(tz=timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            # Someone verified it between our read and our write; the retry reports the conflict
            raise StaleDataError(f"Donation {donation_id} changed concurrently.")

        if not await add_fulfilled(db, donation.item_id, donation.quantity):
            logger.warning("Donation %s verified but item %s is gone; fulfilled_qty not updated",
                           donation_id, donation.item_id)
        if not await restock(db, donation.item_id, donation.quantity, verifier_id):
            logger.warning("Donation %s verified but item %s has no inventory row; stock not updated",
                           donation_id, donation.item_id)

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Donation %s verified by %s", donation_id, verifier_id)
    return await get_donation(db, donation_id)
