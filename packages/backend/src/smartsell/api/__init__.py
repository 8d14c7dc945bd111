"""API route aggregation.

All routers registered here get mounted in main.py under /api/v1.
No route requires authentication.
"""

from fastapi import APIRouter

from smartsell.api.health import router as health_router
from smartsell.api.listings import router as listings_router
from smartsell.api.metrics import router as metrics_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(listings_router, tags=["listings", "uploads", "shipping"])
api_router.include_router(metrics_router, tags=["metrics"])
