"""API module."""

from fastapi import APIRouter

from .alerts import router as alerts_router
from .analyze import router as analyze_router
from .incidents import router as incidents_router
from .sse import router as sse_router

# Create main API router
router = APIRouter(prefix="/api")

# Include sub-routers
router.include_router(analyze_router, tags=["analysis"])
router.include_router(alerts_router, prefix="/alerts", tags=["alerts"])
router.include_router(incidents_router, prefix="/incidents", tags=["incidents"])
router.include_router(sse_router, tags=["sse"])
