#procurement/policies/rbac.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Union

from procurement.core.errors import Forbidden
from procurement.models.enums import UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: UserRole
    email: str = ""


# --- Core action constants ---
ACTION_CREATE_REQUISITION = "CREATE_REQUISITION"
ACTION_VIEW_ALL_REQUISITIONS = "VIEW_ALL_REQUISITIONS"
ACTION_DECIDE_REQUISITION = "DECIDE_REQUISITION"
ACTION_QUEUE_FOR_TENDER = "QUEUE_FOR_TENDER"

ACTION_CREATE_TENDER = "CREATE_TENDER"
ACTION_UPDATE_TENDER = "UPDATE_TENDER"
ACTION_VIEW_ALL_TENDERS = "VIEW_ALL_TENDERS"
ACTION_VIEW_OPEN_TENDERS = "VIEW_OPEN_TENDERS"

ACTION_SUBMIT_BID = "SUBMIT_BID"
ACTION_LIST_TENDER_BIDS = "LIST_TENDER_BIDS"
ACTION_LIST_MY_BIDS = "LIST_MY_BIDS"

ACTION_VIEW_PROCUREMENT_DASHBOARD = "VIEW_PROCUREMENT_DASHBOARD"
ACTION_VIEW_SUPPLIER_DASHBOARD = "VIEW_SUPPLIER_DASHBOARD"


# Every action lists its own roles; there is no role hierarchy.
_ALLOWED: Dict[str, FrozenSet[UserRole]] = {
    ACTION_CREATE_REQUISITION: frozenset(
        {UserRole.REQUESTER, UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}
    ),
    ACTION_VIEW_ALL_REQUISITIONS: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_DECIDE_REQUISITION: frozenset({UserRole.ADMIN, UserRole.APPROVER}),
    ACTION_QUEUE_FOR_TENDER: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_CREATE_TENDER: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_UPDATE_TENDER: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_VIEW_ALL_TENDERS: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_VIEW_OPEN_TENDERS: frozenset({UserRole.SUPPLIER}),
    ACTION_SUBMIT_BID: frozenset({UserRole.SUPPLIER}),
    ACTION_LIST_TENDER_BIDS: frozenset({UserRole.PROCUREMENT_OFFICER}),
    ACTION_LIST_MY_BIDS: frozenset({UserRole.SUPPLIER}),
    ACTION_VIEW_PROCUREMENT_DASHBOARD: frozenset({UserRole.PROCUREMENT_OFFICER, UserRole.ADMIN}),
    ACTION_VIEW_SUPPLIER_DASHBOARD: frozenset({UserRole.SUPPLIER}),
}


def allowed_roles(action: str) -> FrozenSet[UserRole]:
    return _ALLOWED.get(action, frozenset())


def allow(role: Union[UserRole, str], action: str) -> bool:
    """
    Pure RBAC: may this role attempt this action?
    Unknown roles and unknown actions are denied.
    """
    try:
        role_enum = UserRole.parse(role)
    except ValueError:
        return False
    return role_enum in allowed_roles(action)


def require_action(role: Union[UserRole, str], action: str, *, actor_id: int | None = None) -> UserRole:
    """
    Raise Forbidden unless ``allow(role, action)``; returns the decoded role.
    """
    if not allow(role, action):
        logger.warning(
            "authorization denied",
            extra={"actor_id": actor_id, "role": str(getattr(role, "value", role)), "action": action},
        )
        raise Forbidden(f"Role {getattr(role, 'value', role)} not permitted for action {action}.")
    return UserRole.parse(role)
