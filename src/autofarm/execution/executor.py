from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Literal

import structlog

from autofarm.core.config.farm import FarmConfig
from autofarm.core.engine.state import RunState
from autofarm.core.events.farm import ErrorEvent, MoveEvent
from autofarm.core.types import Coordinate
from autofarm.execution.combat import CombatStep
from autofarm.execution.harvest import HarvestStep
from autofarm.execution.movement import compass_for
from autofarm.services.base import AttackResult, GameService, ServiceError, TileInfo
from autofarm.stats.session import SessionStatsAggregator

log = structlog.get_logger()

Emit = Callable[..., None]
TileAction = Literal["moved", "harvested", "attacked", "skipped"]


@dataclass(frozen=True, slots=True)
class TileResult:
    """
    Structured outcome of one tile; the controller only looks at `success`.

    success=False means the tile does not count as visited.
    """

    success: bool
    position: Coordinate
    action: TileAction
    error: str | None = None
    resources_gained: dict[str, int] = field(default_factory=dict)
    combat: AttackResult | None = None


class ActionExecutor:
    """
    move -> inspect -> (combat | harvest) for a single coordinate.

    Error policy:
      - move rejected / confirmed position != target: failed tile, no error count
      - inspect unavailable: tile counts as "moved"
      - combat skip or harvest timeout: neutral
      - attack rejected: failed tile, no error count
      - any other exception: error count + ErrorEvent + failed tile

    Nothing raised in here reaches the lifecycle controller.
    """

    def __init__(
        self,
        *,
        service: GameService,
        actor_id: str,
        state: RunState,
        stats: SessionStatsAggregator,
        get_config: Callable[[], FarmConfig],
        emit: Emit,
        combat: CombatStep,
        harvest: HarvestStep,
    ) -> None:
        self._service = service
        self._actor_id = actor_id
        self._state = state
        self._stats = stats
        self._get_config = get_config
        self._emit = emit
        self._combat = combat
        self._harvest = harvest

    async def process_tile(self, target: Coordinate) -> TileResult:
        try:
            failure = await self._move(target)
            if failure is not None:
                return TileResult(
                    success=False,
                    position=target,
                    action="skipped",
                    error=f"move not confirmed: {failure}",
                )

            tile = await self._inspect(target)
            if tile is None:
                return TileResult(success=True, position=target, action="moved")

            config = self._get_config()

            combat = await self._combat.run(target, tile, config)
            if combat.performed:
                if combat.status == "rejected":
                    return TileResult(
                        success=False,
                        position=target,
                        action="skipped",
                        error=combat.reason,
                        combat=combat.result,
                    )
                return TileResult(success=True, position=target, action="attacked", combat=combat.result)

            harvest = await self._harvest.run(target, tile)
            if harvest.status == "verified":
                return TileResult(
                    success=True,
                    position=target,
                    action="harvested",
                    resources_gained={
                        "metal": harvest.metal,
                        "energy": harvest.energy,
                        "items": harvest.items,
                    },
                )

            return TileResult(success=True, position=target, action="moved")

        except Exception as exc:
            message = str(exc) or type(exc).__name__
            log.warning(
                "executor.tile_error",
                x=target.x,
                y=target.y,
                error_type=type(exc).__name__,
                error=message,
            )
            self._stats.record_error()
            self._emit(ErrorEvent, position=target, message=message, data={"error_type": type(exc).__name__})
            return TileResult(success=False, position=target, action="skipped", error=message)

    # ---------------- Steps ----------------

    async def _move(self, target: Coordinate) -> str | None:
        """
        Returns None once the service confirms the actor stands on `target`,
        otherwise the reason the move did not land.
        """
        current = self._state.position
        direction = compass_for(current, target)
        if direction is None:
            return None

        result = await self._service.move(self._actor_id, target, direction)
        if not result.ok:
            log.info("executor.move_rejected", x=target.x, y=target.y, reason=result.reason)
            return result.reason or "rejected"

        if result.position != target:
            log.warning(
                "executor.move_mismatch",
                expected=target.as_dict(),
                confirmed=result.position.as_dict() if result.position else None,
            )
            return f"confirmed {result.position}"

        self._state.position = target
        self._emit(
            MoveEvent,
            position=target,
            message=f"Moved {direction.value} to ({target.x}, {target.y})",
            data={"direction": direction.value, "from": current.as_dict()},
        )
        return None

    async def _inspect(self, target: Coordinate) -> TileInfo | None:
        try:
            tile = await self._service.inspect_tile(target)
        except ServiceError as exc:
            log.info("executor.inspect_failed", x=target.x, y=target.y, error=str(exc))
            tile = None

        if tile is None:
            self._emit(
                MoveEvent,
                position=target,
                message=f"No tile info for ({target.x}, {target.y}); moved only",
                data={"tile_info": False},
            )
        return tile
