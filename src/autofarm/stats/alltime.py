from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from autofarm.stats.session import SessionStats

_SECONDS_PER_HOUR = 3600.0


class AllTimeStats(BaseModel):
    """
    Cumulative totals across every finished session of an actor.
    """

    schema_version: int = Field(default=1)

    total_time_elapsed: float = Field(default=0.0, ge=0, description="Seconds")
    total_metal_collected: int = Field(default=0, ge=0)
    total_energy_collected: int = Field(default=0, ge=0)
    total_tiles_visited: int = Field(default=0, ge=0)
    total_cave_items_found: int = Field(default=0, ge=0)
    total_forest_items_found: int = Field(default=0, ge=0)
    total_attacks_launched: int = Field(default=0, ge=0)
    total_attacks_won: int = Field(default=0, ge=0)
    total_attacks_lost: int = Field(default=0, ge=0)
    total_sessions_completed: int = Field(default=0, ge=0)

    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_resources(self) -> int:
        return self.total_metal_collected + self.total_energy_collected


class EfficiencyMetrics(BaseModel):
    resources_per_hour: float
    tiles_per_hour: float
    combat_win_rate: float  # percent
    average_session_minutes: float


def merge_session(all_time: AllTimeStats, session: SessionStats) -> AllTimeStats:
    """
    Add one finished session to the totals (counts as one completed session).
    """
    return AllTimeStats(
        total_time_elapsed=all_time.total_time_elapsed + session.time_elapsed,
        total_metal_collected=all_time.total_metal_collected + session.metal_collected,
        total_energy_collected=all_time.total_energy_collected + session.energy_collected,
        total_tiles_visited=all_time.total_tiles_visited + session.tiles_visited,
        total_cave_items_found=all_time.total_cave_items_found + session.cave_items_found,
        total_forest_items_found=all_time.total_forest_items_found + session.forest_items_found,
        total_attacks_launched=all_time.total_attacks_launched + session.attacks_launched,
        total_attacks_won=all_time.total_attacks_won + session.attacks_won,
        total_attacks_lost=all_time.total_attacks_lost + session.attacks_lost,
        total_sessions_completed=all_time.total_sessions_completed + 1,
    )


def efficiency(all_time: AllTimeStats) -> EfficiencyMetrics:
    hours = all_time.total_time_elapsed / _SECONDS_PER_HOUR
    sessions = all_time.total_sessions_completed
    launched = all_time.total_attacks_launched
    return EfficiencyMetrics(
        resources_per_hour=all_time.total_resources / hours if hours > 0 else 0.0,
        tiles_per_hour=all_time.total_tiles_visited / hours if hours > 0 else 0.0,
        combat_win_rate=all_time.total_attacks_won / launched * 100.0 if launched > 0 else 0.0,
        average_session_minutes=all_time.total_time_elapsed / sessions / 60.0 if sessions > 0 else 0.0,
    )


def summary(all_time: AllTimeStats) -> str:
    hours = int(all_time.total_time_elapsed // _SECONDS_PER_HOUR)
    return f"{all_time.total_sessions_completed} sessions | {hours}h | {all_time.total_resources:,} resources"
