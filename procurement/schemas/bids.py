from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.primitives import Money, ORMModel, Quantity


class BidItemIn(BaseModel):
    requisition_item_id: Optional[int] = None
    description: str = ""
    quantity: Decimal = Decimal("0")
    unit: str = ""
    offered_unit_price: Decimal = Decimal("0")
    specification_text: Optional[str] = None


class BidSubmission(BaseModel):
    """
    Parsed bid form. ``bid_amount`` is optional: when absent the total is
    derived from the items.
    """

    items: List[BidItemIn] = Field(default_factory=list)
    bid_amount: Optional[Decimal] = None
    notes: Optional[str] = Field(default=None, max_length=4000)
    technical_proposal_url: Optional[str] = None
    financial_proposal_url: Optional[str] = None


class BidItemOut(ORMModel):
    id: int
    bid_id: int
    requisition_item_id: Optional[int] = None
    description: str
    quantity: Quantity
    unit: str
    offered_unit_price: Money
    specification_text: Optional[str] = None
    specification_sheet_url: Optional[str] = None
    item_image_url: Optional[str] = None


class BidOut(ORMModel):
    id: int
    tender_id: int
    supplier_id: int
    bid_amount: Money
    status: str
    notes: Optional[str] = None
    technical_proposal_url: Optional[str] = None
    financial_proposal_url: Optional[str] = None
    submission_date: datetime
    items: List[BidItemOut] = Field(default_factory=list)


class SupplierRef(ORMModel):
    id: int
    username: str
    email: str


class TenderRef(ORMModel):
    id: int
    title: str
    status: str
    closing_date: Optional[datetime] = None


class TenderBidOut(BidOut):
    supplier: SupplierRef


class MyBidOut(BidOut):
    tender: TenderRef
