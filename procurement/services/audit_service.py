from __future__ import annotations

from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from procurement.models.audit_log import AuditLog


class AuditAction:
    REQUISITION_CREATED = "REQUISITION_CREATED"
    REQUISITION_APPROVED_FIRST = "REQUISITION_APPROVED_FIRST"
    REQUISITION_APPROVED_FINAL = "REQUISITION_APPROVED_FINAL"
    REQUISITION_REJECTED = "REQUISITION_REJECTED"
    REQUISITION_QUEUED_FOR_TENDER = "REQUISITION_QUEUED_FOR_TENDER"
    REQUISITION_TENDERED = "REQUISITION_TENDERED"
    REQUISITION_CLOSED = "REQUISITION_CLOSED"

    TENDER_CREATED = "TENDER_CREATED"
    TENDER_UPDATED = "TENDER_UPDATED"

    BID_SUBMITTED = "BID_SUBMITTED"


class AuditService:
    def record(
        self,
        db: Session,
        *,
        actor_user_id: Optional[int],
        actor_role: Optional[str],
        action: str,
        entity_type: str,
        entity_id: int,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Stage an audit row in the caller's transaction.
        No commit here: the row lands (or vanishes) with the change it describes.
        """
        row = AuditLog(
            actor_user_id=actor_user_id,
            actor_role=actor_role,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            request_id=request_id,
            details_json=details or {},
        )
        db.add(row)
        return row
