from fastapi import APIRouter

from repairhub.api.v1.health import router as health_router
from repairhub.api.v1.repair_requests import router as repair_requests_router
from repairhub.api.v1.bids import router as bids_router
from repairhub.api.v1.technicians import router as technicians_router
from repairhub.api.v1.reviews import router as reviews_router
from repairhub.api.v1.notifications import router as notifications_router


v1_router = APIRouter()

# ------------------------------------------------------------------
# SYSTEM / CORE
# ------------------------------------------------------------------
v1_router.include_router(health_router, tags=["health"])

# ------------------------------------------------------------------
# MARKETPLACE
# ------------------------------------------------------------------
v1_router.include_router(repair_requests_router, tags=["repair-requests"])
v1_router.include_router(bids_router, tags=["bids"])

# ------------------------------------------------------------------
# TECHNICIANS / ADMIN
# ------------------------------------------------------------------
v1_router.include_router(technicians_router, tags=["technicians"])

# ------------------------------------------------------------------
# REVIEWS / INBOX
# ------------------------------------------------------------------
v1_router.include_router(reviews_router, tags=["reviews"])
v1_router.include_router(notifications_router, tags=["notifications"])
