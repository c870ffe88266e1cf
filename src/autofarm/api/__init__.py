from __future__ import annotations

from fastapi import APIRouter

from autofarm.api.routes.farms import router as farms_router
from autofarm.api.routes.health import router as health_router

# Top-level API router
router = APIRouter()

# Route composition
router.include_router(health_router)
router.include_router(farms_router)
