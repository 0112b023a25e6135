# procurement/api/v1/bids.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from procurement.core.auth_deps import get_current_principal
from procurement.db.session import get_db
from procurement.policies.rbac import Principal
from procurement.schemas.bids import MyBidOut
from procurement.services.bid_service import BidService

router = APIRouter(prefix="/bids")


@router.get("/my-bids", response_model=List[MyBidOut])
def my_bids(
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return BidService(request.app.state.file_storage).list_my_bids(
        db, supplier_id=principal.user_id, actor_role=principal.role
    )
