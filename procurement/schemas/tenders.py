from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel

from procurement.schemas.primitives import Money, ORMModel
from procurement.schemas.requisitions import RequisitionOut


class TenderCreate(BaseModel):
    requisition_id: Optional[int] = None
    title: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    budget: Optional[Decimal] = None
    status: str = "draft"
    published_date: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    bid_opening_date: Optional[datetime] = None
    evaluation_method: Optional[str] = None


class TenderUpdate(BaseModel):
    """Partial update: only fields that are present are applied."""

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    budget: Optional[Decimal] = None
    status: Optional[str] = None
    published_date: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    bid_opening_date: Optional[datetime] = None
    evaluation_method: Optional[str] = None


class TenderOut(ORMModel):
    id: int
    requisition_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    budget: Optional[Money] = None
    status: str
    published_date: Optional[datetime] = None
    closing_date: Optional[datetime] = None
    bid_opening_date: Optional[datetime] = None
    evaluation_method: Optional[str] = None
    created_by_user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TenderDetailOut(TenderOut):
    requisition: Optional[RequisitionOut] = None
