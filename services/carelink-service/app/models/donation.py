"""
CareLink Service — Requirement, inventory and donation models

[CONFIG DATA]        donation_categories — admin maintained
[TRANSACTIONAL DATA] donation_batches, donation_items, inventory, donations
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class DonationStatus(str, PyEnum):
    PLEDGED = "pledged"
    VERIFIED = "verified"


class BatchStatus(str, PyEnum):
    DRAFT = "draft"
    PUBLISHED = "published"


class DonationCategory(Base):
    __tablename__ = "donation_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DonationBatch(Base):
    """
    Groups the items published from one PDF ingestion.
    Purely organizational; ledger math never looks at it.
    """
    __tablename__ = "donation_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    uploaded_by: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=BatchStatus.PUBLISHED.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class DonationItem(Base):
    """
    A requirement line.
    fulfilled_qty only grows through verified donations; version_id is bumped
    on every ledger write.
    """
    __tablename__ = "donation_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    category_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("donation_categories.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    batch_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("donation_batches.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    required_qty: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    fulfilled_qty: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Inventory(Base):
    """
    Physical on-hand stock, one row per DonationItem.
    """
    __tablename__ = "inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("donation_items.id", ondelete="CASCADE"), unique=True, index=True, nullable=False
    )
    quantity_on_hand: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    last_restocked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Donation(Base):
    """
    A pledge against one DonationItem. pledged → verified, exactly once.
    """
    __tablename__ = "donations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    item_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("donation_items.id", ondelete="RESTRICT"), index=True, nullable=False
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=DonationStatus.PLEDGED.value)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    donated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    verified_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
