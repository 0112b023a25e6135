#procurement/models/enums.py
from __future__ import annotations
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    PROCUREMENT_OFFICER = "procurement_officer"
    REQUESTER = "requester"
    SUPPLIER = "supplier"
    APPROVER = "approver"
    EVALUATOR = "evaluator"

    @classmethod
    def parse(cls, raw: "str | UserRole") -> "UserRole":
        """
        Decode a role string (stored data has inconsistent casing).
        Raises ValueError on unknown roles.
        """
        if isinstance(raw, cls):
            return raw
        return cls(str(raw).strip().lower())


class RequisitionType(str, Enum):
    goods = "goods"
    services = "services"
    fixed_asset = "fixed_asset"


class RequisitionStatus(str, Enum):
    # approval chain
    pending_approval_1 = "pending_approval_1"
    pending_approval_2 = "pending_approval_2"
    approved = "approved"
    rejected = "rejected"

    # downstream (tender workflow)
    pending_tender = "pending_tender"
    tendered = "tendered"
    closed = "closed"


class RequisitionAction(str, Enum):
    approve = "approve"
    reject = "reject"


class TenderStatus(str, Enum):
    draft = "draft"
    published = "published"
    evaluation = "evaluation"
    awarded = "awarded"
    closed = "closed"
    cancelled = "cancelled"


class BidStatus(str, Enum):
    submitted = "submitted"
    under_review = "under_review"
    shortlisted = "shortlisted"
    rejected = "rejected"
    awarded = "awarded"
    withdrawn = "withdrawn"


class AttachmentKind(str, Enum):
    spec = "spec"
    image = "image"
