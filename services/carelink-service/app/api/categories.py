"""
CareLink Service — Donation category routes
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import requirement_ops
from app.db.database import get_db
from app.schemas.donation import CategoryCreate, CategoryResponse
from app.schemas.types import EntityId

router = APIRouter(prefix="/api/donation-categories", tags=["donation-categories"])


@router.get("", response_model=list[CategoryResponse])
async def list_categories(user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await requirement_ops.list_categories(db)


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    payload: CategoryCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await requirement_ops.create_category(db, payload.name, payload.description)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: EntityId,
    payload: CategoryCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await requirement_ops.update_category(db, category_id, payload.name, payload.description)


@router.delete("/{category_id}")
async def delete_category(
    category_id: EntityId,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await requirement_ops.delete_category(db, category_id)
    return {"message": "Category deleted"}
