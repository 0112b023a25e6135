# procurement/services/dashboard_service.py
from __future__ import annotations

from collections import Counter
from datetime import timedelta
from typing import Dict, List, Union

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session, selectinload

from procurement.models._time import as_utc, utc_now
from procurement.models.bid import Bid
from procurement.models.enums import BidStatus, RequisitionStatus, TenderStatus, UserRole
from procurement.models.requisition import Requisition
from procurement.models.tender import Tender
from procurement.policies.rbac import (
    ACTION_VIEW_ALL_REQUISITIONS,
    ACTION_VIEW_PROCUREMENT_DASHBOARD,
    ACTION_VIEW_SUPPLIER_DASHBOARD,
    allow,
    require_action,
)
from procurement.schemas.bids import MyBidOut
from procurement.schemas.dashboard import (
    CreationRate,
    DailyCount,
    MyRequisitionStats,
    RequisitionStats,
    SupplierDashboard,
)
from procurement.schemas.tenders import TenderOut

RECENTLY_CLOSED_DAYS = 30
CREATION_RATE_DAYS = 30
RECENT_LIMIT = 5
SUPPLIER_TENDER_LIMIT = 10

_PENDING = (RequisitionStatus.pending_approval_1.value, RequisitionStatus.pending_approval_2.value)
_ACTIVE_TENDER = (TenderStatus.published.value, TenderStatus.evaluation.value)


def _count(db: Session, stmt) -> int:
    return int(db.execute(stmt).scalar() or 0)


def _per_day(db: Session, column, since) -> List[DailyCount]:
    # bucketed here so the day boundary is UTC on every backend
    stamps = db.execute(select(column).where(column >= since)).scalars().all()
    days = Counter(as_utc(s).date() for s in stamps)
    return [DailyCount(date=d, count=n) for d, n in sorted(days.items())]


class DashboardService:
    def requisition_stats(self, db: Session, *, actor_id: int, actor_role: Union[UserRole, str]) -> RequisitionStats:
        require_action(actor_role, ACTION_VIEW_PROCUREMENT_DASHBOARD, actor_id=actor_id)

        since = utc_now() - timedelta(days=RECENTLY_CLOSED_DAYS)
        return RequisitionStats(
            pending_approval=_count(
                db, select(func.count(Requisition.id)).where(Requisition.status.in_(_PENDING))
            ),
            ready_for_tender=_count(
                db,
                select(func.count(Requisition.id)).where(
                    Requisition.status.in_(
                        (RequisitionStatus.approved.value, RequisitionStatus.pending_tender.value)
                    )
                ),
            ),
            active_tenders=_count(
                db, select(func.count(Tender.id)).where(func.lower(Tender.status).in_(_ACTIVE_TENDER))
            ),
            recently_closed=_count(
                db,
                select(func.count(Requisition.id)).where(
                    Requisition.status == RequisitionStatus.closed.value,
                    Requisition.updated_at >= since,
                ),
            ),
        )

    def creation_rate(self, db: Session, *, actor_id: int, actor_role: Union[UserRole, str]) -> CreationRate:
        """Requisitions and tenders created per day over the last 30 days."""
        require_action(actor_role, ACTION_VIEW_PROCUREMENT_DASHBOARD, actor_id=actor_id)

        since = utc_now() - timedelta(days=CREATION_RATE_DAYS)
        return CreationRate(
            requisitions=_per_day(db, Requisition.created_at, since),
            tenders=_per_day(db, Tender.created_at, since),
        )

    def live_tenders(self, db: Session) -> List[Tender]:
        """Published tenders, soonest closing first."""
        return list(
            db.execute(
                select(Tender)
                .where(func.lower(Tender.status) == TenderStatus.published.value)
                .order_by(Tender.closing_date.asc().nulls_last(), Tender.id.asc())
            ).scalars().all()
        )

    def my_requisition_stats(self, db: Session, *, actor_id: int) -> MyRequisitionStats:
        rows = db.execute(
            select(Requisition.status, func.count(Requisition.id))
            .where(Requisition.user_id == actor_id)
            .group_by(Requisition.status)
        ).all()
        counts: Dict[str, int] = {status: int(n) for status, n in rows}

        # anything past final approval counts as approved
        approved = sum(
            counts.get(s.value, 0)
            for s in (
                RequisitionStatus.approved,
                RequisitionStatus.pending_tender,
                RequisitionStatus.tendered,
                RequisitionStatus.closed,
            )
        )
        return MyRequisitionStats(
            pending=sum(counts.get(s, 0) for s in _PENDING),
            approved=approved,
            rejected=counts.get(RequisitionStatus.rejected.value, 0),
        )

    def recent_requisitions(
        self,
        db: Session,
        *,
        actor_id: int,
        actor_role: Union[UserRole, str],
        limit: int = RECENT_LIMIT,
    ) -> List[Requisition]:
        stmt = (
            select(Requisition)
            .options(selectinload(Requisition.items))
            .order_by(desc(Requisition.created_at), desc(Requisition.id))
            .limit(limit)
        )
        if not allow(actor_role, ACTION_VIEW_ALL_REQUISITIONS):
            stmt = stmt.where(Requisition.user_id == actor_id)
        return list(db.execute(stmt).scalars().all())

    def supplier_dashboard(self, db: Session, *, supplier_id: int, actor_role: Union[UserRole, str]) -> SupplierDashboard:
        require_action(actor_role, ACTION_VIEW_SUPPLIER_DASHBOARD, actor_id=supplier_id)

        submitted = _count(db, select(func.count(Bid.id)).where(Bid.supplier_id == supplier_id))
        awarded = _count(
            db,
            select(func.count(Bid.id)).where(
                Bid.supplier_id == supplier_id, Bid.status == BidStatus.awarded.value
            ),
        )
        open_tenders = db.execute(
            select(Tender)
            .where(
                func.lower(Tender.status) == TenderStatus.published.value,
                Tender.closing_date > utc_now(),
            )
            .order_by(Tender.closing_date.asc(), Tender.id.asc())
            .limit(SUPPLIER_TENDER_LIMIT)
        ).scalars().all()
        my_bids = db.execute(
            select(Bid)
            .options(selectinload(Bid.tender), selectinload(Bid.items))
            .where(Bid.supplier_id == supplier_id)
            .order_by(desc(Bid.submission_date), desc(Bid.id))
            .limit(RECENT_LIMIT)
        ).scalars().all()

        return SupplierDashboard(
            bids_submitted=submitted,
            bids_awarded=awarded,
            active_tenders=[TenderOut.model_validate(t) for t in open_tenders],
            my_bids=[MyBidOut.model_validate(b) for b in my_bids],
        )
