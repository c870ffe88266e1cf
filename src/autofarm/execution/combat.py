from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Sequence

import structlog

from autofarm.core.config.farm import FarmConfig
from autofarm.core.events.farm import CombatEvent
from autofarm.core.types import Coordinate, RankFilter, ResourceTarget
from autofarm.services.base import ActorResources, AttackResult, GameService, TileInfo, Unit
from autofarm.stats.session import SessionStatsAggregator

log = structlog.get_logger()

Emit = Callable[..., None]
CombatStatus = Literal["not_applicable", "skipped", "rejected", "resolved"]


# ---------------- Pure rules ----------------

def rank_filter_allows(rank_filter: RankFilter, *, attacker_rank: int, defender_rank: int) -> bool:
    if rank_filter is RankFilter.LOWER:
        return defender_rank < attacker_rank
    if rank_filter is RankFilter.HIGHER:
        return defender_rank > attacker_rank
    return True


@dataclass(frozen=True, slots=True)
class UnitSelection:
    units: tuple[Unit, ...]
    # Resource the attack is meant to bring in; informational only.
    intent: Literal["metal", "energy"]

    @property
    def unit_ids(self) -> list[str]:
        return [u.unit_id for u in self.units]


def select_units(
    units: Sequence[Unit],
    *,
    resources: ActorResources,
    target: ResourceTarget,
    max_units: int,
) -> UnitSelection:
    """
    Pick units for an attack: strongest first, capped at max_units.

    The resource target only decides the reported intent; every strategy
    commits the same units. With LOWEST the intent is whichever resource the
    attacker holds less of (metal on a tie).
    """
    if target is ResourceTarget.METAL:
        intent: Literal["metal", "energy"] = "metal"
    elif target is ResourceTarget.ENERGY:
        intent = "energy"
    else:
        intent = "metal" if resources.metal <= resources.energy else "energy"

    ordered = sorted(units, key=lambda u: u.strength, reverse=True)
    return UnitSelection(units=tuple(ordered[:max_units]), intent=intent)


# ---------------- Combat step ----------------

@dataclass(frozen=True, slots=True)
class CombatOutcome:
    status: CombatStatus
    reason: str | None = None
    result: AttackResult | None = None

    @property
    def performed(self) -> bool:
        """
        An attack request went out (harvest is not attempted on this tile).
        """
        return self.status in ("rejected", "resolved")


NOT_APPLICABLE = CombatOutcome(status="not_applicable")


class CombatStep:
    """
    Conditional attack against another actor's base.

    Rank-filter mismatches and empty unit selections are skips: expected,
    reported as events, never counted as errors. Service exceptions
    propagate to the executor.
    """

    def __init__(
        self,
        *,
        service: GameService,
        actor_id: str,
        stats: SessionStatsAggregator,
        emit: Emit,
        max_units: int,
    ) -> None:
        self._service = service
        self._actor_id = actor_id
        self._stats = stats
        self._emit = emit
        self._max_units = max_units

    def applies(self, tile: TileInfo, config: FarmConfig) -> bool:
        occ = tile.occupant
        return (
            config.attack_players
            and occ is not None
            and occ.is_base
            and occ.actor_id != self._actor_id
        )

    async def run(self, position: Coordinate, tile: TileInfo, config: FarmConfig) -> CombatOutcome:
        if not self.applies(tile, config):
            return NOT_APPLICABLE
        assert tile.occupant is not None
        defender_id = tile.occupant.actor_id

        attacker = await self._service.get_actor_profile(self._actor_id)
        defender = await self._service.get_actor_profile(defender_id)

        if not rank_filter_allows(config.rank_filter, attacker_rank=attacker.rank, defender_rank=defender.rank):
            reason = f"rank filter {config.rank_filter.value}: defender rank {defender.rank} vs {attacker.rank}"
            return self._skip(position, defender_id, reason)

        selection = select_units(
            attacker.units,
            resources=attacker.resources,
            target=config.resource_target,
            max_units=self._max_units,
        )
        if not selection.units:
            return self._skip(position, defender_id, "no units available")

        result = await self._service.attack(self._actor_id, defender_id, selection.unit_ids)
        self._stats.record_attack_launched()

        if not result.ok:
            reason = result.reason or "attack rejected"
            log.info("combat.rejected", defender=defender_id, reason=reason)
            self._emit(
                CombatEvent,
                position=position,
                message=f"Attack on {defender_id} rejected: {reason}",
                data={"defender": defender_id, "rejected": True, "reason": reason},
            )
            return CombatOutcome(status="rejected", reason=reason, result=result)

        self._stats.record_attack_result(won=result.won)
        verdict = "Victory" if result.won else "Defeat"
        log.info("combat.resolved", defender=defender_id, won=result.won, units=len(selection.units))
        self._emit(
            CombatEvent,
            position=position,
            message=f"{verdict} vs {defender_id} ({len(selection.units)} units)",
            data={
                "defender": defender_id,
                "victory": result.won,
                "intent": selection.intent,
                "metal_stolen": result.metal_transferred,
                "energy_stolen": result.energy_transferred,
                "xp_gained": result.experience_gained,
                "units_lost": result.units_lost,
            },
        )
        return CombatOutcome(status="resolved", result=result)

    def _skip(self, position: Coordinate, defender_id: str, reason: str) -> CombatOutcome:
        log.debug("combat.skipped", defender=defender_id, reason=reason)
        self._emit(
            CombatEvent,
            position=position,
            message=f"Skipped {defender_id}: {reason}",
            data={"defender": defender_id, "skipped": True, "reason": reason},
        )
        return CombatOutcome(status="skipped", reason=reason)
