"""
CareLink Service — Donation pledge routes
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import Forbidden
from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import donation_ops
from app.db.database import get_db
from app.schemas.donation import DonationCreate, DonationResponse, VerifyResponse
from app.schemas.types import EntityId

router = APIRouter(prefix="/api/donations", tags=["donations"])


@router.get("", response_model=list[DonationResponse])
async def list_donations(
    status_filter: str | None = Query(None, alias="status"),
    item_id: EntityId | None = Query(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await donation_ops.list_donations(
        db,
        user_id=None if user.is_admin else user.id,
        status=status_filter,
        item_id=item_id,
    )


@router.get("/{donation_id}", response_model=DonationResponse)
async def get_donation(
    donation_id: EntityId,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    donation = await donation_ops.get_donation(db, donation_id)
    if not user.is_admin and donation.user_id != user.id:
        raise Forbidden("You can only view your own donations")
    return donation


@router.post("", response_model=DonationResponse, status_code=status.HTTP_201_CREATED)
async def create_donation(
    payload: DonationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await donation_ops.create_donation(
        db, user_id=user.id, item_id=payload.item_id, quantity=payload.quantity, notes=payload.notes
    )


@router.put("/{donation_id}/verify", response_model=VerifyResponse)
async def verify_donation(
    donation_id: EntityId,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    donation = await donation_ops.verify_donation(db, donation_id, verifier_id=admin.id)
    return VerifyResponse(donation=DonationResponse.model_validate(donation))
