from fastapi import APIRouter

from procurement.api.v1.health import router as health_router
from procurement.api.v1.processes import router as processes_router
from procurement.api.v1.selections import router as selections_router
from procurement.api.v1.items import router as items_router
from procurement.api.v1.bids import router as bids_router
from procurement.api.v1.disqualifications import router as disqualifications_router
from procurement.api.v1.ranking import router as ranking_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# PROCESSES / SELECTIONS
# ------------------------------------------------------------------
v1_router.include_router(processes_router, tags=["processes"])
v1_router.include_router(selections_router, tags=["selections"])
v1_router.include_router(items_router, tags=["items"])

# ------------------------------------------------------------------
# BIDDING
# ------------------------------------------------------------------
v1_router.include_router(bids_router, tags=["bids"])
v1_router.include_router(disqualifications_router, tags=["disqualifications"])
v1_router.include_router(ranking_router, tags=["ranking"])
