# procurement/api/v1/tenders.py
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from procurement.core.auth_deps import get_current_principal
from procurement.core.errors import InvalidInput
from procurement.db.session import get_db
from procurement.models.enums import AttachmentKind
from procurement.policies.rbac import ACTION_SUBMIT_BID, Principal, require_action
from procurement.schemas.bids import BidOut, BidSubmission, TenderBidOut
from procurement.schemas.tenders import TenderCreate, TenderDetailOut, TenderOut, TenderUpdate
from procurement.services.bid_service import BidService
from procurement.services.file_storage import Attachment
from procurement.services.tender_service import TenderService

router = APIRouter(prefix="/tenders")

_FILE_FIELDS = {
    "item_spec_sheet_": AttachmentKind.spec,
    "item_image_": AttachmentKind.image,
}


def _rid(request: Request):
    return getattr(request.state, "request_id", None)


# ---------------------------------------------------------------------
# multipart bid form
# ---------------------------------------------------------------------


def _parse_submission(form) -> BidSubmission:
    raw_items = form.get("items_json")
    if not raw_items or not isinstance(raw_items, str):
        raise InvalidInput("items_json is required.")
    try:
        items = json.loads(raw_items)
    except json.JSONDecodeError:
        raise InvalidInput("items_json is not valid JSON.")
    if not isinstance(items, list):
        raise InvalidInput("items_json must be a JSON array.")

    bid_amount: Optional[Decimal] = None
    raw_amount = form.get("bid_amount")
    if isinstance(raw_amount, str) and raw_amount.strip():
        try:
            bid_amount = Decimal(raw_amount.strip())
        except InvalidOperation:
            raise InvalidInput("bid_amount must be a number.")

    def _text(name: str) -> Optional[str]:
        v = form.get(name)
        return v if isinstance(v, str) and v.strip() else None

    try:
        return BidSubmission(
            items=items,
            bid_amount=bid_amount,
            notes=_text("notes"),
            technical_proposal_url=_text("technical_proposal_url"),
            financial_proposal_url=_text("financial_proposal_url"),
        )
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        raise InvalidInput(f"{loc}: {first.get('msg')}")


async def _collect_attachments(form, max_bytes: int) -> Dict[int, Dict[AttachmentKind, Attachment]]:
    """
    item_spec_sheet_<i> / item_image_<i> -> {i: {kind: Attachment}}.
    Reads at most max_bytes + 1 so oversized files are detected without
    buffering them whole.
    """
    out: Dict[int, Dict[AttachmentKind, Attachment]] = {}
    for key, value in form.multi_items():
        if not isinstance(value, UploadFile) or not value.filename:
            continue
        for prefix, kind in _FILE_FIELDS.items():
            if not key.startswith(prefix):
                continue
            suffix = key[len(prefix):]
            if not suffix.isdigit():
                raise InvalidInput(f"Unrecognised file field '{key}'.")
            data = await value.read(max_bytes + 1)
            out.setdefault(int(suffix), {})[kind] = Attachment(filename=value.filename, data=data)
    return out


# ---------------------------------------------------------------------
# tenders
# ---------------------------------------------------------------------


@router.post("", response_model=TenderOut, status_code=status.HTTP_201_CREATED)
def create_tender(
    payload: TenderCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return TenderService().create_tender(
        db,
        payload=payload,
        creator_id=principal.user_id,
        creator_role=principal.role,
        request_id=_rid(request),
    )


@router.get("", response_model=List[TenderOut])
def list_tenders(
    category: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return TenderService().list_tenders(
        db, actor_id=principal.user_id, actor_role=principal.role, category=category
    )


@router.get("/{tender_id}", response_model=TenderDetailOut)
def get_tender(
    tender_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return TenderService().get_tender(
        db, tender_id=tender_id, actor_id=principal.user_id, actor_role=principal.role
    )


@router.put("/{tender_id}", response_model=TenderOut)
def update_tender(
    tender_id: int,
    payload: TenderUpdate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return TenderService().update_tender(
        db,
        tender_id=tender_id,
        changes=payload,
        actor_id=principal.user_id,
        actor_role=principal.role,
        request_id=_rid(request),
    )


# ---------------------------------------------------------------------
# bids on a tender
# ---------------------------------------------------------------------


@router.post("/{tender_id}/bids", response_model=BidOut, status_code=status.HTTP_201_CREATED)
async def submit_bid(
    tender_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    require_action(principal.role, ACTION_SUBMIT_BID, actor_id=principal.user_id)

    storage = request.app.state.file_storage
    form = await request.form()
    try:
        submission = _parse_submission(form)
        attachments = await _collect_attachments(form, storage.max_bytes)
    finally:
        await form.close()

    # the write path (row lock, transaction, file writes) is blocking
    return await run_in_threadpool(
        BidService(storage).create_bid,
        db,
        tender_id=tender_id,
        supplier_id=principal.user_id,
        supplier_role=principal.role,
        submission=submission,
        attachments=attachments,
        request_id=_rid(request),
    )


@router.get("/{tender_id}/bids", response_model=List[TenderBidOut])
def list_tender_bids(
    tender_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return BidService(request.app.state.file_storage).list_tender_bids(
        db, tender_id=tender_id, actor_id=principal.user_id, actor_role=principal.role
    )
