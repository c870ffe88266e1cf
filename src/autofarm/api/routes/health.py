from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from autofarm.api.routes.farms import get_registry
from autofarm.core.config.settings import settings
from autofarm.core.run.registry import FarmRegistry
from autofarm.core.types import FarmStatus

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    environment: str
    game_api_url: str
    farms: int
    active_farms: int


@router.get("/health", response_model=HealthResponse, summary="Liveness plus farm counts")
async def health(registry: FarmRegistry = Depends(get_registry)) -> HealthResponse:
    records = registry.list()
    return HealthResponse(
        status="ok",
        environment=settings.env,
        game_api_url=settings.game_api_url,
        farms=len(records),
        active_farms=sum(r.engine.get_state().status is FarmStatus.ACTIVE for r in records),
    )
