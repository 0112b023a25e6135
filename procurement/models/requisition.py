#procurement/models/requisition.py
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
from procurement.models.enums import RequisitionStatus


class Requisition(Base):
    __tablename__ = "requisitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )

    type: Mapped[str] = mapped_column(String(32), nullable=False)
    aac: Mapped[Optional[str]] = mapped_column(String(1), nullable=True)  # A / F / P
    material_group: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    exchange_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 6), nullable=True)

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        server_default=text(f"'{RequisitionStatus.pending_approval_1.value}'"),
    )

    # dual approval evidence
    approver_one_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    approved_one_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    approver_two_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    approved_two_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # optimistic concurrency guard, bumped on every UPDATE
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    items: Mapped[List["RequisitionItem"]] = relationship(
        "RequisitionItem",
        back_populates="requisition",
        order_by="RequisitionItem.id",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint(
            "approver_two_id IS NULL OR approver_one_id IS NULL OR approver_two_id <> approver_one_id",
            name="ck_requisitions_distinct_approvers",
        ),
        Index("ix_requisitions_status", "status"),
        Index("ix_requisitions_user_created", "user_id", "created_at"),
    )


class RequisitionItem(Base):
    __tablename__ = "requisition_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    requisition_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("requisitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False)

    # cost breakdown
    estimated_unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    freight_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    insurance_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    installation_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)

    # asset management record reference (external register)
    amr_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    requisition: Mapped["Requisition"] = relationship("Requisition", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_requisition_items_quantity_positive"),
    )
