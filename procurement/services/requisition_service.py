# procurement/services/requisition_service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Optional, Union

from sqlalchemy import desc, select
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from procurement.core.errors import InvalidInput, NotFound
from procurement.db.transaction import transaction
from procurement.models.enums import RequisitionStatus, RequisitionType, UserRole
from procurement.models.requisition import Requisition, RequisitionItem
from procurement.policies.rbac import (
    ACTION_CREATE_REQUISITION,
    ACTION_VIEW_ALL_REQUISITIONS,
    allow,
    require_action,
)
from procurement.schemas.requisitions import RequisitionCreate, RequisitionItemIn
from procurement.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)


def _validate_item(idx: int, item: RequisitionItemIn) -> None:
    n = idx + 1
    if not (item.description or "").strip():
        raise InvalidInput(f"Item {n}: description is required.")
    if item.quantity is None or item.quantity <= 0:
        raise InvalidInput(f"Item {n}: quantity must be greater than zero.")
    if not (item.unit or "").strip():
        raise InvalidInput(f"Item {n}: unit is required.")
    for field in ("estimated_unit_price", "freight_cost", "insurance_cost", "installation_cost", "value"):
        v: Optional[Decimal] = getattr(item, field)
        if v is not None and v < 0:
            raise InvalidInput(f"Item {n}: {field} must not be negative.")


def validate_requisition_payload(payload: RequisitionCreate) -> RequisitionType:
    """First violated rule wins."""
    raw_type = (payload.type or "").strip().lower()
    if not raw_type:
        raise InvalidInput("Requisition type is required.")
    try:
        req_type = RequisitionType(raw_type)
    except ValueError:
        allowed = ", ".join(t.value for t in RequisitionType)
        raise InvalidInput(f"Requisition type must be one of: {allowed}.")

    if not payload.items:
        raise InvalidInput("At least one item is required.")
    for idx, item in enumerate(payload.items):
        _validate_item(idx, item)
    return req_type


class RequisitionService:
    def __init__(self, audit: Optional[AuditService] = None):
        self.audit = audit or AuditService()

    # -----------------------------------------------------------------
    # create
    # -----------------------------------------------------------------

    def create_requisition(
        self,
        db: Session,
        *,
        payload: RequisitionCreate,
        creator_id: int,
        creator_role: Union[UserRole, str] = UserRole.REQUESTER,
        request_id: Optional[str] = None,
    ) -> Requisition:
        """
        Two-phase aggregate write in one transaction:
        1. insert the parent (no items attached) to obtain its id
        2. insert every item with that id as FK and its own fresh identity

        A failure at any step rolls back the parent as well.
        """
        role = require_action(creator_role, ACTION_CREATE_REQUISITION, actor_id=creator_id)
        req_type = validate_requisition_payload(payload)

        with transaction(db, operation="create_requisition"):
            req = Requisition(
                user_id=creator_id,
                type=req_type.value,
                aac=payload.aac,
                material_group=payload.material_group,
                exchange_rate=payload.exchange_rate,
                status=RequisitionStatus.pending_approval_1.value,
            )
            db.add(req)
            db.flush()  # parent id

            created: List[RequisitionItem] = []
            for item in payload.items:
                row = RequisitionItem(
                    requisition_id=req.id,
                    description=item.description.strip(),
                    quantity=item.quantity,
                    unit=item.unit.strip(),
                    estimated_unit_price=item.estimated_unit_price,
                    freight_cost=item.freight_cost,
                    insurance_cost=item.insurance_cost,
                    installation_cost=item.installation_cost,
                    value=item.value,
                    amr_id=item.amr_id,
                )
                db.add(row)
                db.flush()  # item id
                created.append(row)

            self.audit.record(
                db,
                actor_user_id=creator_id,
                actor_role=role.value,
                action=AuditAction.REQUISITION_CREATED,
                entity_type="requisition",
                entity_id=req.id,
                request_id=request_id,
                details={"type": req.type, "items": len(created)},
            )

        set_committed_value(req, "items", created)
        logger.info(
            "requisition created",
            extra={
                "requisition_id": req.id,
                "creator_id": creator_id,
                "items": len(created),
                "request_id": request_id,
            },
        )
        return req

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    def list_requisitions(
        self,
        db: Session,
        *,
        actor_id: int,
        actor_role: Union[UserRole, str],
    ) -> List[Requisition]:
        """
        Officers/admins see everything; everybody else sees their own.
        Newest first, items loaded.
        """
        stmt = (
            select(Requisition)
            .options(selectinload(Requisition.items))
            .order_by(desc(Requisition.created_at), desc(Requisition.id))
        )
        if not allow(actor_role, ACTION_VIEW_ALL_REQUISITIONS):
            stmt = stmt.where(Requisition.user_id == actor_id)

        return list(db.execute(stmt).scalars().all())

    def get_requisition(
        self,
        db: Session,
        *,
        requisition_id: int,
        actor_id: int,
        actor_role: Union[UserRole, str],
    ) -> Requisition:
        """
        Ownership-scoped for non-officers: "exists but not yours" is reported
        as NotFound so existence does not leak.
        """
        stmt = (
            select(Requisition)
            .options(selectinload(Requisition.items))
            .where(Requisition.id == requisition_id)
        )
        if not allow(actor_role, ACTION_VIEW_ALL_REQUISITIONS):
            stmt = stmt.where(Requisition.user_id == actor_id)

        req = db.execute(stmt).scalar_one_or_none()
        if not req:
            raise NotFound("Requisition not found.")
        return req
