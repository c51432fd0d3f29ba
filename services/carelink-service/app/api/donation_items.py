"""
CareLink Service — Donation item routes, including PDF requirement ingestion

Ingestion is two-step: extract-from-pdf / extract-from-text return candidates
for an admin to review, and bulk-create publishes the reviewed list.
"""
import logging

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.errors import NotFound, ValidationError
from app.core.security import CurrentUser, get_current_user, require_admin
from app.db import requirement_ops
from app.db.database import get_db
from app.extraction.extractor import extract
from app.extraction.pdf_text import extract_pdf_text
from app.schemas.donation import (
    BatchResponse,
    BulkCreateRequest,
    BulkCreateResponse,
    DonationItemCreate,
    DonationItemResponse,
    DonationItemUpdate,
    ExtractResponse,
    ExtractTextRequest,
)
from app.schemas.types import EntityId

settings = get_settings()
logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/donation-items", tags=["donation-items"])


def _extract_response(raw_text: str) -> ExtractResponse:
    candidates = [c.to_dict() for c in extract(raw_text)]
    if not candidates:
        return ExtractResponse(
            items=[],
            total=0,
            message="No items could be extracted. Please add items manually.",
        )
    return ExtractResponse(items=candidates, total=len(candidates))


@router.get("", response_model=list[DonationItemResponse])
async def list_items(
    category_id: EntityId | None = Query(None),
    active_only: bool = Query(False),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await requirement_ops.list_items(
        db, category_id=category_id, active_only=active_only or not user.is_admin
    )


@router.post("/extract-from-pdf", response_model=ExtractResponse)
async def extract_from_pdf(
    file: UploadFile = File(...),
    admin: CurrentUser = Depends(require_admin),
):
    if file.content_type not in ("application/pdf", "application/octet-stream"):
        raise ValidationError("Only PDF files are allowed")

    data = await file.read(settings.PDF_MAX_BYTES + 1)
    if len(data) > settings.PDF_MAX_BYTES:
        raise ValidationError(f"PDF exceeds the {settings.PDF_MAX_BYTES // (1024 * 1024)} MB upload limit")

    raw_text = extract_pdf_text(data)
    logger.info("Extracted %d characters of text from %s", len(raw_text), file.filename)
    return _extract_response(raw_text)


@router.post("/extract-from-text", response_model=ExtractResponse)
async def extract_from_text(payload: ExtractTextRequest, admin: CurrentUser = Depends(require_admin)):
    return _extract_response(payload.text)


@router.post("/bulk-create", response_model=BulkCreateResponse, status_code=status.HTTP_201_CREATED)
async def bulk_create(
    payload: BulkCreateRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    batch, items = await requirement_ops.bulk_create(
        db,
        batch_title=payload.batch_title,
        uploader_id=admin.id,
        items=[item.model_dump() for item in payload.items],
    )
    return BulkCreateResponse(
        batch=BatchResponse.model_validate(batch),
        items=[DonationItemResponse.model_validate(item) for item in items],
        message=f"{len(items)} items published successfully",
    )


@router.get("/{item_id}", response_model=DonationItemResponse)
async def get_item(item_id: EntityId, user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Retired items stay visible to admins only."""
    item = await requirement_ops.get_item(db, item_id)
    if not item.is_active and not user.is_admin:
        raise NotFound("Donation item not found")
    return item


@router.post("", response_model=DonationItemResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: DonationItemCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await requirement_ops.create_item(
        db,
        category_id=payload.category_id,
        name=payload.name,
        unit=payload.unit,
        required_qty=payload.required_qty,
        is_active=payload.is_active,
        updated_by=admin.id,
    )


@router.put("/{item_id}", response_model=DonationItemResponse)
async def update_item(
    item_id: EntityId,
    payload: DonationItemUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await requirement_ops.update_item(db, item_id, payload.model_dump(exclude_unset=True))


@router.delete("/{item_id}")
async def delete_item(
    item_id: EntityId,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await requirement_ops.delete_item(db, item_id)
    return {"message": "Donation item deleted"}
