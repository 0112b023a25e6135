#procurement/models/tender.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from procurement.db.base import Base
from procurement.models._time import utc_now
from procurement.models.enums import TenderStatus


class Tender(Base):
    __tablename__ = "tenders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    requisition_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("requisitions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    budget: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)

    status: Mapped[str] = mapped_column(
        String(16), nullable=False, server_default=text(f"'{TenderStatus.draft.value}'")
    )

    published_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closing_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    bid_opening_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    evaluation_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_by_user_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    requisition = relationship("Requisition")
    bids = relationship("Bid", back_populates="tender", passive_deletes=True)

    __table_args__ = (
        Index("ix_tenders_status_closing", "status", "closing_date"),
    )
