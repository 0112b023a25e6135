# procurement/api/v1/dashboard.py
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from procurement.core.auth_deps import get_current_principal
from procurement.db.session import get_db
from procurement.policies.rbac import Principal
from procurement.schemas.dashboard import (
    CreationRate,
    LiveTender,
    MyRequisitionStats,
    RequisitionStats,
    SupplierDashboard,
)
from procurement.schemas.requisitions import RequisitionOut
from procurement.services.dashboard_service import DashboardService

router = APIRouter(prefix="/dashboard")


@router.get("/requisition-stats", response_model=RequisitionStats)
def requisition_stats(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().requisition_stats(db, actor_id=principal.user_id, actor_role=principal.role)


@router.get("/my-requisition-stats", response_model=MyRequisitionStats)
def my_requisition_stats(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().my_requisition_stats(db, actor_id=principal.user_id)


@router.get("/recent-requisitions", response_model=List[RequisitionOut])
def recent_requisitions(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().recent_requisitions(db, actor_id=principal.user_id, actor_role=principal.role)


@router.get("/supplier", response_model=SupplierDashboard)
def supplier_dashboard(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().supplier_dashboard(db, supplier_id=principal.user_id, actor_role=principal.role)


@router.get("/creation-rate", response_model=CreationRate)
def creation_rate(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().creation_rate(db, actor_id=principal.user_id, actor_role=principal.role)


@router.get("/live-tenders", response_model=List[LiveTender])
def live_tenders(db: Session = Depends(get_db), principal: Principal = Depends(get_current_principal)):
    return DashboardService().live_tenders(db)
