"""
CareLink Service — Pydantic schemas for requirements, inventory and donations
"""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from app.schemas.types import EntityId


# ─── Categories ───────────────────────────────────────────────────────────────

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""


class CategoryResponse(BaseModel):
    id: str
    name: str
    description: str

    model_config = {"from_attributes": True}


# ─── Donation items ───────────────────────────────────────────────────────────

class DonationItemCreate(BaseModel):
    category_id: EntityId
    name: str = Field(..., min_length=1, max_length=255)
    unit: str = Field(..., min_length=1, max_length=32)
    required_qty: float = Field(..., ge=0)
    is_active: bool = True


class DonationItemUpdate(BaseModel):
    category_id: EntityId | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    unit: str | None = Field(None, min_length=1, max_length=32)
    required_qty: float | None = Field(None, ge=0)
    is_active: bool | None = None


class DonationItemResponse(BaseModel):
    id: str
    category_id: str
    batch_id: str | None = None
    name: str
    unit: str
    required_qty: float
    fulfilled_qty: float
    is_active: bool

    model_config = {"from_attributes": True}


class ExtractTextRequest(BaseModel):
    text: str


class ExtractedItem(BaseModel):
    name: str
    quantity: float
    unit: str
    suggested_category: str
    confidence: Literal["high", "low"]


class ExtractResponse(BaseModel):
    items: list[ExtractedItem]
    total: int
    message: str = "Items extracted. Review and edit before publishing."


class BulkItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    quantity: float = Field(..., ge=0)
    unit: str = Field(..., min_length=1, max_length=32)
    category: str = Field(..., min_length=1, max_length=255)


class BulkCreateRequest(BaseModel):
    batch_title: str = Field(..., min_length=1, max_length=255)
    items: list[BulkItem] = Field(..., min_length=1)


class BatchResponse(BaseModel):
    id: str
    title: str
    uploaded_by: str
    status: str

    model_config = {"from_attributes": True}


class BulkCreateResponse(BaseModel):
    batch: BatchResponse
    items: list[DonationItemResponse]
    message: str


# ─── Inventory ────────────────────────────────────────────────────────────────

class InventoryUpdate(BaseModel):
    quantity_on_hand: float = Field(..., ge=0)


class InventoryResponse(BaseModel):
    id: str
    item_id: str
    quantity_on_hand: float
    last_restocked_at: datetime | None = None
    updated_by: str | None = None

    model_config = {"from_attributes": True}


class InventoryRow(InventoryResponse):
    item_name: str
    unit: str
    category: str | None = None
    required_qty: float
    fulfilled_qty: float
    is_active: bool


class ReportRow(BaseModel):
    id: str
    name: str
    category: str | None = None
    unit: str
    required_qty: float
    fulfilled_qty: float
    quantity_on_hand: float
    deficit: float
    surplus: float
    fulfillment_pct: int
    status: Literal["surplus", "needed", "fulfilled"]


class ReportSummary(BaseModel):
    total_items: int
    fulfilled: int
    needed: int
    surplus: int


class ReportResponse(BaseModel):
    report: list[ReportRow]
    summary: ReportSummary


# ─── Donations ────────────────────────────────────────────────────────────────

class DonationCreate(BaseModel):
    item_id: EntityId
    quantity: float = Field(..., gt=0)
    notes: str | None = None


class DonationResponse(BaseModel):
    id: str
    user_id: str
    item_id: str
    quantity: float
    status: str
    notes: str | None = None
    donated_at: datetime | None = None
    verified_by: str | None = None
    verified_at: datetime | None = None

    model_config = {"from_attributes": True}


class VerifyResponse(BaseModel):
    donation: DonationResponse
    message: str = "Donation verified and inventory updated"
