# procurement/api/v1/requisitions.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from procurement.core.auth_deps import get_current_principal
from procurement.db.session import get_db
from procurement.policies.rbac import Principal
from procurement.schemas.requisitions import (
    RequisitionActionRequest,
    RequisitionCreate,
    RequisitionOut,
)
from procurement.services.requisition_service import RequisitionService
from procurement.services.requisition_state_machine import RequisitionStateMachine

router = APIRouter(prefix="/requisitions")


def _rid(request: Request):
    return getattr(request.state, "request_id", None)


# ---------------------------------------------------------------------
# POST /requisitions
# ---------------------------------------------------------------------


@router.post("", response_model=RequisitionOut, status_code=status.HTTP_201_CREATED)
def create_requisition(
    payload: RequisitionCreate,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return RequisitionService().create_requisition(
        db,
        payload=payload,
        creator_id=principal.user_id,
        creator_role=principal.role,
        request_id=_rid(request),
    )


@router.get("", response_model=List[RequisitionOut])
def list_requisitions(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return RequisitionService().list_requisitions(
        db, actor_id=principal.user_id, actor_role=principal.role
    )


@router.get("/{requisition_id}", response_model=RequisitionOut)
def get_requisition(
    requisition_id: int,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return RequisitionService().get_requisition(
        db,
        requisition_id=requisition_id,
        actor_id=principal.user_id,
        actor_role=principal.role,
    )


# ---------------------------------------------------------------------
# state transitions
# ---------------------------------------------------------------------


@router.post("/{requisition_id}/action", response_model=RequisitionOut)
def requisition_action(
    requisition_id: int,
    payload: RequisitionActionRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return RequisitionStateMachine().apply_action(
        db,
        requisition_id=requisition_id,
        actor_id=principal.user_id,
        actor_role=principal.role,
        action=payload.action,
        reason=payload.reason,
        request_id=_rid(request),
    )


@router.post("/{requisition_id}/queue-for-tender", response_model=RequisitionOut)
def queue_for_tender(
    requisition_id: int,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return RequisitionStateMachine().queue_for_tender(
        db,
        requisition_id=requisition_id,
        actor_id=principal.user_id,
        actor_role=principal.role,
        request_id=_rid(request),
    )
