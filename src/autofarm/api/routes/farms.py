from __future__ import annotations

from threading import Lock
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from autofarm.core.config.farm import FarmConfig
from autofarm.core.config.settings import settings
from autofarm.core.engine.engine import AutoFarmEngine
from autofarm.core.engine.state import RunState
from autofarm.core.engine.timing import EngineSettings
from autofarm.core.run.registry import FarmBusy, FarmExists, FarmNotFound, FarmRegistry
from autofarm.core.types import Coordinate, FarmStatus, SweepDirection
from autofarm.services.http import HttpGameService
from autofarm.stats.alltime import EfficiencyMetrics, efficiency, summary
from autofarm.storage.stats_store import AllTimeStatsStore

log = structlog.get_logger()

router = APIRouter(tags=["farms"])

_registry_lock = Lock()
_registry: FarmRegistry | None = None


def get_registry() -> FarmRegistry:
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = FarmRegistry(
                service_factory=lambda: HttpGameService(
                    base_url=settings.game_api_url,
                    timeout=settings.request_timeout,
                ),
                store=AllTimeStatsStore(path=settings.stats_path),
                engine_settings=EngineSettings.from_app(settings),
            )
        return _registry


async def close_registry() -> None:
    """
    Stop and drop every live farm (app shutdown).
    """
    global _registry
    with _registry_lock:
        registry, _registry = _registry, None
    if registry is None:
        return
    for rec in registry.list():
        await registry.remove(rec.actor_id)


# =========================
# Schemas
# =========================

class CoordinateModel(BaseModel):
    x: int = Field(ge=1)
    y: int = Field(ge=1)

    @classmethod
    def of(cls, c: Coordinate) -> "CoordinateModel":
        return cls(x=c.x, y=c.y)


class CreateFarmRequest(BaseModel):
    actor_id: str = Field(min_length=1)
    start: CoordinateModel
    config: FarmConfig = Field(default_factory=FarmConfig)


class FarmStateModel(BaseModel):
    status: FarmStatus
    position: CoordinateModel
    start_position: CoordinateModel
    cursor: CoordinateModel
    current_row: int
    direction: SweepDirection
    tiles_completed: int
    start_time: float | None
    paused_time: float | None
    last_harvest_time: float | None

    @classmethod
    def of(cls, s: RunState) -> "FarmStateModel":
        return cls(
            status=s.status,
            position=CoordinateModel.of(s.position),
            start_position=CoordinateModel.of(s.start_position),
            cursor=CoordinateModel.of(s.cursor),
            current_row=s.current_row,
            direction=s.direction,
            tiles_completed=s.tiles_completed,
            start_time=s.start_time,
            paused_time=s.paused_time,
            last_harvest_time=s.last_harvest_time,
        )


class FarmDetailsResponse(BaseModel):
    actor_id: str
    timing: str
    running: bool
    config: FarmConfig
    state: FarmStateModel
    stats: dict[str, Any]


class FarmsListResponse(BaseModel):
    farms: list[FarmDetailsResponse]


class StopFarmResponse(BaseModel):
    actor_id: str
    final_stats: dict[str, Any] | None


class AllTimeStatsResponse(BaseModel):
    actor_id: str
    totals: dict[str, Any]
    efficiency: EfficiencyMetrics
    summary: str


def _details(engine: AutoFarmEngine) -> FarmDetailsResponse:
    return FarmDetailsResponse(
        actor_id=engine.actor_id,
        timing=engine.timing.name,
        running=engine.running,
        config=engine.get_config(),
        state=FarmStateModel.of(engine.get_state()),
        stats=engine.get_stats().to_dict(),
    )


def _engine(registry: FarmRegistry, actor_id: str) -> AutoFarmEngine:
    try:
        return registry.get(actor_id)
    except FarmNotFound:
        raise HTTPException(status_code=404, detail="farm not found")


# =========================
# Routes
# =========================
# Lifecycle handlers are async: engines schedule their tile loop on the
# running event loop and must only be touched from it.

@router.post("/farms", response_model=FarmDetailsResponse, status_code=201)
async def create_farm(
    payload: CreateFarmRequest,
    registry: FarmRegistry = Depends(get_registry),
) -> FarmDetailsResponse:
    try:
        engine = registry.create(
            actor_id=payload.actor_id,
            start=Coordinate(payload.start.x, payload.start.y),
            config=payload.config,
        )
    except FarmExists as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _details(engine)


@router.get("/farms", response_model=FarmsListResponse)
async def list_farms(registry: FarmRegistry = Depends(get_registry)) -> FarmsListResponse:
    return FarmsListResponse(farms=[_details(rec.engine) for rec in registry.list()])


@router.get("/farms/{actor_id}", response_model=FarmDetailsResponse)
async def get_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> FarmDetailsResponse:
    return _details(_engine(registry, actor_id))


@router.post("/farms/{actor_id}/start", response_model=FarmDetailsResponse)
async def start_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> FarmDetailsResponse:
    engine = _engine(registry, actor_id)
    engine.start()
    return _details(engine)


@router.post("/farms/{actor_id}/pause", response_model=FarmDetailsResponse)
async def pause_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> FarmDetailsResponse:
    engine = _engine(registry, actor_id)
    engine.pause()
    return _details(engine)


@router.post("/farms/{actor_id}/resume", response_model=FarmDetailsResponse)
async def resume_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> FarmDetailsResponse:
    engine = _engine(registry, actor_id)
    engine.resume()
    return _details(engine)


@router.post("/farms/{actor_id}/stop", response_model=StopFarmResponse)
async def stop_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> StopFarmResponse:
    final = _engine(registry, actor_id).stop()
    return StopFarmResponse(actor_id=actor_id, final_stats=final.to_dict() if final is not None else None)


@router.patch("/farms/{actor_id}/config", response_model=FarmDetailsResponse)
async def update_farm_config(
    actor_id: str,
    partial: dict[str, Any],
    registry: FarmRegistry = Depends(get_registry),
) -> FarmDetailsResponse:
    engine = _engine(registry, actor_id)
    try:
        applied = engine.update_config(partial)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))
    if not applied:
        raise HTTPException(status_code=409, detail="config can only change while the farm is stopped")
    return _details(engine)


@router.post("/farms/{actor_id}/stats/flush", response_model=AllTimeStatsResponse)
async def flush_farm_stats(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> AllTimeStatsResponse:
    try:
        totals = registry.flush_stats(actor_id)
    except FarmNotFound:
        raise HTTPException(status_code=404, detail="farm not found")
    except FarmBusy:
        raise HTTPException(status_code=409, detail="stats can only be flushed while the farm is stopped")
    log.info("api.stats_flushed", actor_id=actor_id, summary=summary(totals))
    return AllTimeStatsResponse(
        actor_id=actor_id,
        totals=totals.model_dump(mode="json"),
        efficiency=efficiency(totals),
        summary=summary(totals),
    )


@router.get("/farms/{actor_id}/stats/alltime", response_model=AllTimeStatsResponse)
async def get_alltime_stats(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> AllTimeStatsResponse:
    totals = registry.store.load(actor_id)
    return AllTimeStatsResponse(
        actor_id=actor_id,
        totals=totals.model_dump(mode="json"),
        efficiency=efficiency(totals),
        summary=summary(totals),
    )


@router.delete("/farms/{actor_id}", status_code=204)
async def delete_farm(actor_id: str, registry: FarmRegistry = Depends(get_registry)) -> None:
    try:
        await registry.remove(actor_id)
    except FarmNotFound:
        raise HTTPException(status_code=404, detail="farm not found")
