#procurement/models/bid.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base
from procurement.models._time import utc_now
from procurement.models.enums import BidStatus


class Bid(Base):
    __tablename__ = "bids"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tender_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tenders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    supplier_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )

    bid_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    technical_proposal_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    financial_proposal_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{BidStatus.submitted.value}'")
    )

    submission_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    tender = relationship("Tender", back_populates="bids")
    supplier = relationship("User")
    items: Mapped[List["BidItem"]] = relationship(
        "BidItem",
        back_populates="bid",
        order_by="BidItem.id",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("bid_amount > 0", name="ck_bids_amount_positive"),
        Index("ix_bids_tender_submitted", "tender_id", "submission_date"),
        Index("ix_bids_supplier_submitted", "supplier_id", "submission_date"),
    )


class BidItem(Base):
    __tablename__ = "bid_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    bid_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("bids.id", ondelete="CASCADE"), nullable=False, index=True
    )
    requisition_item_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("requisition_items.id", ondelete="SET NULL"), nullable=True, index=True
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)
    offered_unit_price: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)

    specification_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    specification_sheet_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    item_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    bid: Mapped["Bid"] = relationship("Bid", back_populates="items")
