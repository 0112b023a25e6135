# procurement/services/bid_service.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List, Mapping, Optional, Union

from sqlalchemy import asc, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from procurement.core.errors import InvalidInput, InvalidState, NotFound
from procurement.db.transaction import transaction
from procurement.models._time import as_utc, utc_now
from procurement.models.bid import Bid, BidItem
from procurement.models.enums import AttachmentKind, BidStatus, TenderStatus, UserRole
from procurement.models.requisition import RequisitionItem
from procurement.models.tender import Tender
from procurement.policies.rbac import (
    ACTION_LIST_MY_BIDS,
    ACTION_LIST_TENDER_BIDS,
    ACTION_SUBMIT_BID,
    require_action,
)
from procurement.schemas.bids import BidItemIn, BidSubmission
from procurement.services.audit_service import AuditAction, AuditService
from procurement.services.file_storage import Attachment, LocalFileStorage

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

Attachments = Mapping[int, Mapping[AttachmentKind, Attachment]]


# ---------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------


def ensure_tender_open(tender: Tender) -> None:
    """Bids are accepted only on a published tender before its closing date."""
    if not tender.status:
        raise InvalidState("Tender status is not set.")
    if tender.status.strip().lower() != TenderStatus.published.value:
        raise InvalidState("Tender is not published and thus not open for bidding.")
    closing = as_utc(tender.closing_date)
    if closing is None or closing <= utc_now():
        raise InvalidState("Tender is past its closing date or closing date not set.")


def _validate_item(idx: int, item: BidItemIn) -> None:
    n = idx + 1
    if not (item.description or "").strip():
        raise InvalidInput(f"Bid item {n}: description is required.")
    if item.quantity is None or item.quantity <= 0:
        raise InvalidInput(f"Bid item {n}: quantity must be greater than zero.")
    if not (item.unit or "").strip():
        raise InvalidInput(f"Bid item {n}: unit is required.")
    if item.offered_unit_price is None or item.offered_unit_price < 0:
        raise InvalidInput(f"Bid item {n}: offered_unit_price must not be negative.")


def compute_bid_amount(submission: BidSubmission) -> Decimal:
    """
    Explicit total wins; otherwise sum(offered_unit_price * quantity).
    """
    if submission.bid_amount is not None:
        amount = Decimal(submission.bid_amount)
    else:
        amount = sum(
            (Decimal(i.offered_unit_price) * Decimal(i.quantity) for i in submission.items),
            Decimal("0"),
        )
    amount = amount.quantize(CENTS)
    if amount <= 0:
        raise InvalidInput("Total bid amount must be greater than zero.")
    return amount


# ---------------------------------------------------------------------
# service
# ---------------------------------------------------------------------


class BidService:
    def __init__(self, storage: LocalFileStorage, audit: Optional[AuditService] = None):
        self.storage = storage
        self.audit = audit or AuditService()

    def _get_tender_for_update(self, db: Session, tender_id: int) -> Tender:
        tender = db.execute(
            select(Tender)
            .where(Tender.id == tender_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not tender:
            raise NotFound("Tender not found.")
        return tender

    def _check_requisition_refs(self, db: Session, tender: Tender, items: List[BidItemIn]) -> None:
        refs = [(i, it.requisition_item_id) for i, it in enumerate(items) if it.requisition_item_id is not None]
        if not refs:
            return

        allowed = set()
        if tender.requisition_id is not None:
            allowed = set(
                db.execute(
                    select(RequisitionItem.id).where(RequisitionItem.requisition_id == tender.requisition_id)
                ).scalars().all()
            )
        for idx, ref in refs:
            if ref not in allowed:
                raise InvalidInput(
                    f"Bid item {idx + 1}: requisition item {ref} is not part of this tender's requisition."
                )

    def _check_attachments(self, items: List[BidItemIn], attachments: Attachments) -> None:
        for idx, files in attachments.items():
            if idx < 0 or idx >= len(items):
                raise InvalidInput(f"Attachment refers to unknown bid item {idx + 1}.")
            for kind, attachment in files.items():
                self.storage.check_size(idx, kind, attachment)

    # -----------------------------------------------------------------
    # submit
    # -----------------------------------------------------------------

    def create_bid(
        self,
        db: Session,
        *,
        tender_id: int,
        supplier_id: int,
        supplier_role: Union[UserRole, str],
        submission: BidSubmission,
        attachments: Optional[Attachments] = None,
        request_id: Optional[str] = None,
    ) -> Bid:
        """
        Bid + items (+ uploaded files) as one unit.

        The tender row is read-locked for the duration so it cannot close
        underneath the submission. Files written before a rollback are
        removed again; any that cannot be removed are logged as orphans.
        """
        require_action(supplier_role, ACTION_SUBMIT_BID, actor_id=supplier_id)
        attachments = attachments or {}
        written: List[str] = []

        try:
            with transaction(db, operation="create_bid"):
                tender = self._get_tender_for_update(db, tender_id)
                ensure_tender_open(tender)

                if not submission.items:
                    raise InvalidInput("At least one bid item is required.")
                for idx, item in enumerate(submission.items):
                    _validate_item(idx, item)
                self._check_requisition_refs(db, tender, submission.items)
                self._check_attachments(submission.items, attachments)
                amount = compute_bid_amount(submission)

                bid = Bid(
                    tender_id=tender.id,
                    supplier_id=supplier_id,
                    bid_amount=amount,
                    notes=submission.notes,
                    technical_proposal_url=submission.technical_proposal_url,
                    financial_proposal_url=submission.financial_proposal_url,
                    status=BidStatus.submitted.value,
                    submission_date=utc_now(),
                )
                db.add(bid)
                db.flush()  # bid id, needed for the upload paths

                for idx, item in enumerate(submission.items):
                    row = BidItem(
                        bid_id=bid.id,
                        requisition_item_id=item.requisition_item_id,
                        description=item.description.strip(),
                        quantity=item.quantity,
                        unit=item.unit.strip(),
                        offered_unit_price=item.offered_unit_price,
                        specification_text=item.specification_text,
                    )

                    files = attachments.get(idx, {})
                    spec = files.get(AttachmentKind.spec)
                    if spec is not None:
                        row.specification_sheet_url = self.storage.store(bid.id, idx, AttachmentKind.spec, spec)
                        written.append(row.specification_sheet_url)
                    image = files.get(AttachmentKind.image)
                    if image is not None:
                        row.item_image_url = self.storage.store(bid.id, idx, AttachmentKind.image, image)
                        written.append(row.item_image_url)

                    db.add(row)
                    db.flush()

                self.audit.record(
                    db,
                    actor_user_id=supplier_id,
                    actor_role=UserRole.SUPPLIER.value,
                    action=AuditAction.BID_SUBMITTED,
                    entity_type="bid",
                    entity_id=bid.id,
                    request_id=request_id,
                    details={
                        "tender_id": tender.id,
                        "items": len(submission.items),
                        "files": len(written),
                    },
                )
        except BaseException:
            if written:
                orphans = self.storage.discard(written)
                logger.warning(
                    "bid rolled back after writing uploads",
                    extra={
                        "tender_id": tender_id,
                        "supplier_id": supplier_id,
                        "written": len(written),
                        "orphans": orphans,
                        "request_id": request_id,
                    },
                )
            raise

        logger.info(
            "bid submitted",
            extra={
                "bid_id": bid.id,
                "tender_id": tender_id,
                "supplier_id": supplier_id,
                "bid_amount": str(bid.bid_amount),
                "request_id": request_id,
            },
        )
        return self._read_back(db, bid)

    def _read_back(self, db: Session, bid: Bid) -> Bid:
        """
        Committed data is never reported as failed because the re-read
        failed: fall back to the bid without its items.
        """
        try:
            return db.execute(
                select(Bid)
                .options(selectinload(Bid.items))
                .where(Bid.id == bid.id)
                .execution_options(populate_existing=True)
            ).scalar_one()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "bid read-back failed; returning bid without items",
                extra={"bid_id": bid.id, "error": str(exc)},
            )
            set_committed_value(bid, "items", [])
            return bid

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------

    def list_tender_bids(
        self,
        db: Session,
        *,
        tender_id: int,
        actor_id: int,
        actor_role: Union[UserRole, str],
    ) -> List[Bid]:
        """Procurement officers only; oldest submission first, supplier attached."""
        require_action(actor_role, ACTION_LIST_TENDER_BIDS, actor_id=actor_id)

        if db.get(Tender, tender_id) is None:
            raise NotFound("Tender not found.")

        return list(
            db.execute(
                select(Bid)
                .options(selectinload(Bid.supplier), selectinload(Bid.items))
                .where(Bid.tender_id == tender_id)
                .order_by(asc(Bid.submission_date), asc(Bid.id))
            ).scalars().all()
        )

    def list_my_bids(
        self,
        db: Session,
        *,
        supplier_id: int,
        actor_role: Union[UserRole, str],
    ) -> List[Bid]:
        """Suppliers only; newest submission first, tender attached."""
        require_action(actor_role, ACTION_LIST_MY_BIDS, actor_id=supplier_id)

        return list(
            db.execute(
                select(Bid)
                .options(selectinload(Bid.tender), selectinload(Bid.items))
                .where(Bid.supplier_id == supplier_id)
                .order_by(desc(Bid.submission_date), desc(Bid.id))
            ).scalars().all()
        )
