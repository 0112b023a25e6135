# procurement/services/tender_service.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session, selectinload

from procurement.core.errors import InvalidInput, NotFound
from procurement.db.transaction import transaction
from procurement.models._time import as_utc, utc_now
from procurement.models.enums import RequisitionStatus, TenderStatus, UserRole
from procurement.models.requisition import Requisition
from procurement.models.tender import Tender
from procurement.policies.rbac import (
    ACTION_CREATE_TENDER,
    ACTION_UPDATE_TENDER,
    ACTION_VIEW_ALL_TENDERS,
    ACTION_VIEW_OPEN_TENDERS,
    allow,
    require_action,
)
from procurement.schemas.tenders import TenderCreate, TenderUpdate
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.requisition_state_machine import RequisitionStateMachine

logger = logging.getLogger(__name__)

_DATE_FIELDS = ("published_date", "closing_date", "bid_opening_date")

# tender outcomes that finish the originating requisition
_FINAL_TENDER_STATES = frozenset({TenderStatus.awarded.value, TenderStatus.closed.value})


def _parse_status(raw: Optional[str]) -> TenderStatus:
    try:
        return TenderStatus((raw or "").strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in TenderStatus)
        raise InvalidInput(f"Tender status must be one of: {allowed}.")


def _clean_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    if "title" in fields:
        title = (fields["title"] or "").strip()
        if not title:
            raise InvalidInput("Tender title is required.")
        fields["title"] = title
    if "status" in fields:
        fields["status"] = _parse_status(fields["status"]).value
    if fields.get("budget") is not None and fields["budget"] < 0:
        raise InvalidInput("Tender budget must not be negative.")
    for f in _DATE_FIELDS:
        if f in fields:
            fields[f] = as_utc(fields[f])
    return fields


class TenderService:
    def __init__(
        self,
        state_machine: Optional[RequisitionStateMachine] = None,
        audit: Optional[AuditService] = None,
    ):
        self.audit = audit or AuditService()
        self.state_machine = state_machine or RequisitionStateMachine(audit=self.audit)

    # -----------------------------------------------------------------
    # writes
    # -----------------------------------------------------------------

    def create_tender(
        self,
        db: Session,
        *,
        payload: TenderCreate,
        creator_id: int,
        creator_role: Union[UserRole, str],
        request_id: Optional[str] = None,
    ) -> Tender:
        """
        Stamp the creator and persist. A tender raised from a requisition
        moves that requisition to ``tendered`` in the same transaction.
        """
        role = require_action(creator_role, ACTION_CREATE_TENDER, actor_id=creator_id)
        fields = _clean_fields(payload.model_dump())

        if fields["status"] == TenderStatus.published.value and fields.get("published_date") is None:
            fields["published_date"] = utc_now()

        with transaction(db, operation="create_tender"):
            requisition_id = fields.get("requisition_id")
            if requisition_id is not None:
                req = self.state_machine.lock(db, requisition_id)
                previous = self.state_machine.advance(req, RequisitionStatus.tendered)
                self.audit.record(
                    db,
                    actor_user_id=creator_id,
                    actor_role=role.value,
                    action=AuditAction.REQUISITION_TENDERED,
                    entity_type="requisition",
                    entity_id=req.id,
                    request_id=request_id,
                    details={"from": previous, "to": req.status},
                )

            tender = Tender(created_by_user_id=creator_id, **fields)
            db.add(tender)
            db.flush()

            self.audit.record(
                db,
                actor_user_id=creator_id,
                actor_role=role.value,
                action=AuditAction.TENDER_CREATED,
                entity_type="tender",
                entity_id=tender.id,
                request_id=request_id,
                details={"status": tender.status, "requisition_id": requisition_id},
            )

        logger.info(
            "tender created",
            extra={"tender_id": tender.id, "creator_id": creator_id, "request_id": request_id},
        )
        return tender

    def update_tender(
        self,
        db: Session,
        *,
        tender_id: int,
        changes: TenderUpdate,
        actor_id: int,
        actor_role: Union[UserRole, str],
        request_id: Optional[str] = None,
    ) -> Tender:
        role = require_action(actor_role, ACTION_UPDATE_TENDER, actor_id=actor_id)
        fields = _clean_fields(changes.model_dump(exclude_unset=True))

        with transaction(db, operation="update_tender"):
            tender = db.execute(
                select(Tender)
                .where(Tender.id == tender_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if not tender:
                raise NotFound("Tender not found.")

            previous_status = tender.status
            for name, value in fields.items():
                setattr(tender, name, value)

            if (
                tender.status == TenderStatus.published.value
                and previous_status != TenderStatus.published.value
                and tender.published_date is None
            ):
                tender.published_date = utc_now()

            if (
                tender.status in _FINAL_TENDER_STATES
                and previous_status not in _FINAL_TENDER_STATES
                and tender.requisition_id is not None
            ):
                self._close_requisition(db, tender, actor_id, role, request_id)

            self.audit.record(
                db,
                actor_user_id=actor_id,
                actor_role=role.value,
                action=AuditAction.TENDER_UPDATED,
                entity_type="tender",
                entity_id=tender.id,
                request_id=request_id,
                details={"fields": sorted(fields), "from": previous_status, "to": tender.status},
            )
            db.flush()

        return tender

    def _close_requisition(self, db: Session, tender: Tender, actor_id: int, role: UserRole, request_id) -> None:
        req = self.state_machine.lock(db, tender.requisition_id)
        if req.status != RequisitionStatus.tendered.value:
            # requisition already moved on (or was never tendered through this path)
            return
        previous = self.state_machine.advance(req, RequisitionStatus.closed)
        self.audit.record(
            db,
            actor_user_id=actor_id,
            actor_role=role.value,
            action=AuditAction.REQUISITION_CLOSED,
            entity_type="requisition",
            entity_id=req.id,
            request_id=request_id,
            details={"from": previous, "to": req.status, "tender_id": tender.id},
        )

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    def list_tenders(
        self,
        db: Session,
        *,
        actor_id: int,
        actor_role: Union[UserRole, str],
        category: Optional[str] = None,
    ) -> List[Tender]:
        """
        - suppliers: published tenders still accepting bids (optional category)
        - procurement officers / admins: everything
        - anyone else: tenders they created
        Newest first.
        """
        stmt = select(Tender).order_by(desc(Tender.created_at), desc(Tender.id))

        if allow(actor_role, ACTION_VIEW_OPEN_TENDERS):
            stmt = stmt.where(
                func.lower(Tender.status) == TenderStatus.published.value,
                Tender.closing_date > utc_now(),
            )
            if category:
                stmt = stmt.where(func.lower(Tender.category) == category.strip().lower())
        elif not allow(actor_role, ACTION_VIEW_ALL_TENDERS):
            stmt = stmt.where(Tender.created_by_user_id == actor_id)

        return list(db.execute(stmt).scalars().all())

    def get_tender(
        self,
        db: Session,
        *,
        tender_id: int,
        actor_id: int,
        actor_role: Union[UserRole, str],
    ) -> Tender:
        """Tender with its originating requisition and that requisition's items."""
        tender = db.execute(
            select(Tender)
            .options(selectinload(Tender.requisition).selectinload(Requisition.items))
            .where(Tender.id == tender_id)
        ).scalar_one_or_none()
        if not tender:
            raise NotFound("Tender not found.")

        # suppliers only ever see published tenders
        if allow(actor_role, ACTION_VIEW_OPEN_TENDERS) and (tender.status or "").lower() != TenderStatus.published.value:
            raise NotFound("Tender not found.")
        return tender
