from fastapi import APIRouter

from procurement.api.v1.health import router as health_router
from procurement.api.v1.auth import router as auth_router
from procurement.api.v1.requisitions import router as requisitions_router
from procurement.api.v1.tenders import router as tenders_router
from procurement.api.v1.bids import router as bids_router
from procurement.api.v1.dashboard import router as dashboard_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(auth_router, tags=["auth"])

# ------------------------------------------------------------------
# REQUISITIONS
# ------------------------------------------------------------------
v1_router.include_router(requisitions_router, tags=["requisitions"])

# ------------------------------------------------------------------
# TENDERS / BIDS
# ------------------------------------------------------------------
v1_router.include_router(tenders_router, tags=["tenders"])
v1_router.include_router(bids_router, tags=["bids"])

# ------------------------------------------------------------------
# DASHBOARDS
# ------------------------------------------------------------------
v1_router.include_router(dashboard_router, tags=["dashboard"])
