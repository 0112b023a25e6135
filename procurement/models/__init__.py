from procurement.models.user import User
from procurement.models.auth import PasswordReset, UserSession
from procurement.models.requisition import Requisition, RequisitionItem
from procurement.models.tender import Tender
from procurement.models.bid import Bid, BidItem
from procurement.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserSession",
    "PasswordReset",
    "Requisition",
    "RequisitionItem",
    "Tender",
    "Bid",
    "BidItem",
    "AuditLog",
]
