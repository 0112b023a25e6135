from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.primitives import Money, ORMModel, Quantity


class RequisitionItemIn(BaseModel):
    """
    Line item as submitted. Business rules (quantity > 0, non-empty
    description/unit) are checked by the service so the caller gets the
    first violated rule back as ``invalid_input``.
    """

    description: str = ""
    quantity: Decimal = Decimal("0")
    unit: str = ""
    estimated_unit_price: Optional[Decimal] = None
    freight_cost: Optional[Decimal] = None
    insurance_cost: Optional[Decimal] = None
    installation_cost: Optional[Decimal] = None
    value: Optional[Decimal] = None
    amr_id: Optional[int] = None


class RequisitionCreate(BaseModel):
    type: str = ""
    aac: Optional[str] = Field(default=None, max_length=1)
    material_group: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    items: List[RequisitionItemIn] = Field(default_factory=list)


class RequisitionActionRequest(BaseModel):
    action: str = Field(..., description="approve | reject")
    reason: Optional[str] = Field(default=None, max_length=2000)


class RequisitionItemOut(ORMModel):
    id: int
    requisition_id: int
    description: str
    quantity: Quantity
    unit: str
    estimated_unit_price: Optional[Money] = None
    freight_cost: Optional[Money] = None
    insurance_cost: Optional[Money] = None
    installation_cost: Optional[Money] = None
    value: Optional[Money] = None
    amr_id: Optional[int] = None


class RequisitionSummary(ORMModel):
    id: int
    user_id: int
    type: str
    aac: Optional[str] = None
    material_group: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    status: str
    approver_one_id: Optional[int] = None
    approved_one_at: Optional[datetime] = None
    approver_two_id: Optional[int] = None
    approved_two_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class RequisitionOut(RequisitionSummary):
    items: List[RequisitionItemOut] = Field(default_factory=list)
