from __future__ import annotations

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from procurement.schemas.bids import MyBidOut
from procurement.schemas.primitives import ORMModel
from procurement.schemas.tenders import TenderOut


class RequisitionStats(BaseModel):
    pending_approval: int = 0
    ready_for_tender: int = 0
    active_tenders: int = 0
    recently_closed: int = 0


class MyRequisitionStats(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0


class SupplierDashboard(BaseModel):
    bids_submitted: int = 0
    bids_awarded: int = 0
    active_tenders: List[TenderOut] = Field(default_factory=list)
    my_bids: List[MyBidOut] = Field(default_factory=list)


class DailyCount(BaseModel):
    date: dt.date
    count: int


class CreationRate(BaseModel):
    """Per-day creation counts, oldest day first; days with nothing created are omitted."""

    requisitions: List[DailyCount] = Field(default_factory=list)
    tenders: List[DailyCount] = Field(default_factory=list)


class LiveTender(ORMModel):
    id: int
    title: str
    category: Optional[str] = None
    closing_date: Optional[dt.datetime] = None
