# procurement/services/requisition_state_machine.py
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from procurement.core.errors import Forbidden, InvalidInput, InvalidState, NotFound
from procurement.db.transaction import transaction
from procurement.models._time import utc_now
from procurement.models.enums import RequisitionAction, RequisitionStatus, UserRole
from procurement.models.requisition import Requisition
from procurement.policies.rbac import (
    ACTION_DECIDE_REQUISITION,
    ACTION_QUEUE_FOR_TENDER,
    require_action,
)
from procurement.services.audit_service import AuditAction, AuditService

logger = logging.getLogger(__name__)

S = RequisitionStatus


class RequisitionStateMachine:
    """
    Flat state machine over ``Requisition.status``.

        pending_approval_1 -> pending_approval_2 -> approved
                 \\                  \\
                  +------------------+--> rejected

        approved -> pending_tender -> tendered -> closed
        approved -------------------> tendered

    Approver ids/timestamps are evidence of the approval path, not states.
    Whoever approves a ``pending_approval_1`` requisition first becomes
    approver one; approver two must be a different user.
    """

    NOT_REJECTABLE: FrozenSet[str] = frozenset({S.approved.value, S.tendered.value, S.closed.value})

    # transitions driven by the tender workflow
    DOWNSTREAM: Dict[str, FrozenSet[str]] = {
        S.approved.value: frozenset({S.pending_tender.value, S.tendered.value}),
        S.pending_tender.value: frozenset({S.tendered.value}),
        S.tendered.value: frozenset({S.closed.value}),
    }

    def __init__(self, audit: Optional[AuditService] = None):
        self.audit = audit or AuditService()

    # ─────────────────────────────────────────────
    # INTERNAL READ HELPERS
    # ─────────────────────────────────────────────

    def _get_for_update(self, db: Session, requisition_id: int) -> Requisition:
        """
        Row-locked read (SELECT ... FOR UPDATE) that also refreshes any copy
        already sitting in the session's identity map.
        """
        req = db.execute(
            select(Requisition)
            .where(Requisition.id == requisition_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not req:
            raise NotFound("Requisition not found.")
        return req

    # ─────────────────────────────────────────────
    # APPROVAL CHAIN
    # ─────────────────────────────────────────────

    def _approve(self, req: Requisition, actor_id: int) -> str:
        if req.status == S.pending_approval_1.value:
            req.approver_one_id = actor_id
            req.approved_one_at = utc_now()
            req.status = S.pending_approval_2.value
            return AuditAction.REQUISITION_APPROVED_FIRST

        if req.status == S.pending_approval_2.value:
            if req.approver_one_id == actor_id:
                raise Forbidden(
                    "Second approval must be by a different approver; "
                    "you already performed the first approval."
                )
            req.approver_two_id = actor_id
            req.approved_two_at = utc_now()
            req.status = S.approved.value
            return AuditAction.REQUISITION_APPROVED_FINAL

        raise InvalidState(f"Cannot approve requisition in status '{req.status}'.")

    def _reject(self, req: Requisition, reason: str) -> str:
        if req.status in self.NOT_REJECTABLE:
            raise InvalidState(f"Requisition cannot be rejected. Current status: {req.status}")

        # approval evidence is kept for the audit trail
        req.status = S.rejected.value
        req.rejection_reason = reason
        return AuditAction.REQUISITION_REJECTED

    def apply_action(
        self,
        db: Session,
        *,
        requisition_id: int,
        actor_id: int,
        actor_role: Union[UserRole, str],
        action: str,
        reason: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Requisition:
        """
        Approve or reject a requisition.

        Check order: role (Forbidden), action and reason (InvalidInput),
        existence (NotFound), then state legality (InvalidState / Forbidden).
        Returns the updated requisition; items are not loaded.
        """
        role = require_action(actor_role, ACTION_DECIDE_REQUISITION, actor_id=actor_id)

        try:
            act = RequisitionAction((action or "").strip().lower())
        except ValueError:
            raise InvalidInput("Invalid action specified. Must be 'approve' or 'reject'.")

        reason_clean = (reason or "").strip()
        if act == RequisitionAction.reject and not reason_clean:
            raise InvalidInput("Rejection reason is required when action is 'reject'.")

        with transaction(db, operation="requisition_action"):
            req = self._get_for_update(db, requisition_id)
            previous = req.status

            if act == RequisitionAction.approve:
                audit_action = self._approve(req, actor_id)
            else:
                audit_action = self._reject(req, reason_clean)

            self.audit.record(
                db,
                actor_user_id=actor_id,
                actor_role=role.value,
                action=audit_action,
                entity_type="requisition",
                entity_id=req.id,
                request_id=request_id,
                details={"from": previous, "to": req.status, "reason": reason_clean or None},
            )
            db.flush()

        logger.info(
            "requisition transition",
            extra={
                "requisition_id": req.id,
                "actor_id": actor_id,
                "action": act.value,
                "from_status": previous,
                "to_status": req.status,
                "request_id": request_id,
            },
        )
        return req

    # ─────────────────────────────────────────────
    # DOWNSTREAM (TENDER WORKFLOW)
    # ─────────────────────────────────────────────

    def advance(self, req: Requisition, target: RequisitionStatus) -> str:
        """
        Move an approved requisition along the tender path.
        Runs inside the caller's transaction; returns the previous status.
        """
        allowed = self.DOWNSTREAM.get(req.status, frozenset())
        if target.value not in allowed:
            raise InvalidState(
                f"Cannot move requisition from status '{req.status}' to '{target.value}'."
            )
        previous = req.status
        req.status = target.value
        return previous

    def lock(self, db: Session, requisition_id: int) -> Requisition:
        return self._get_for_update(db, requisition_id)

    def queue_for_tender(
        self,
        db: Session,
        *,
        requisition_id: int,
        actor_id: int,
        actor_role: Union[UserRole, str],
        request_id: Optional[str] = None,
    ) -> Requisition:
        role = require_action(actor_role, ACTION_QUEUE_FOR_TENDER, actor_id=actor_id)

        with transaction(db, operation="requisition_queue_for_tender"):
            req = self._get_for_update(db, requisition_id)
            previous = self.advance(req, S.pending_tender)
            self.audit.record(
                db,
                actor_user_id=actor_id,
                actor_role=role.value,
                action=AuditAction.REQUISITION_QUEUED_FOR_TENDER,
                entity_type="requisition",
                entity_id=req.id,
                request_id=request_id,
                details={"from": previous, "to": req.status},
            )
            db.flush()

        logger.info(
            "requisition queued for tender",
            extra={"requisition_id": req.id, "actor_id": actor_id, "request_id": request_id},
        )
        return req
