from __future__ import annotations

from dataclasses import dataclass

from autofarm.core.config.settings import AppSettings


@dataclass(frozen=True, slots=True)
class TimingProfile:
    """
    Named bundle of pacing delays (seconds).

    - tile_delay: wait after each tile before the next one starts
    - harvest_extra_delay: extra wait after a harvest attempt so the
      service's harvest cooldown has elapsed
    """

    name: str
    tile_delay: float
    harvest_extra_delay: float


# Service enforces the cooldown itself; no extra wait.
VIP_PROFILE = TimingProfile(name="vip", tile_delay=0.3, harvest_extra_delay=0.0)

# 0.5s + 2.0s after a harvest covers the service's 3s harvest window
# together with movement and polling time.
BASIC_PROFILE = TimingProfile(name="basic", tile_delay=0.5, harvest_extra_delay=2.0)


def profile_for(*, vip: bool) -> TimingProfile:
    return VIP_PROFILE if vip else BASIC_PROFILE


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """
    Engine knobs resolved from AppSettings.

    Kept separate so engines can be built in tests without touching
    the environment.
    """

    grid_width: int = 150
    grid_height: int = 150
    stats_interval: float = 1.0
    harvest_poll_interval: float = 0.2
    harvest_poll_attempts: int = 15
    max_units_per_attack: int = 10

    def __post_init__(self) -> None:
        if self.grid_width < 1 or self.grid_height < 1:
            raise ValueError("grid dimensions must be >= 1")
        if self.harvest_poll_attempts < 1:
            raise ValueError("harvest_poll_attempts must be >= 1")
        if self.max_units_per_attack < 1:
            raise ValueError("max_units_per_attack must be >= 1")

    @classmethod
    def from_app(cls, app: AppSettings) -> "EngineSettings":
        return cls(
            grid_width=app.grid_width,
            grid_height=app.grid_height,
            stats_interval=app.stats_interval,
            harvest_poll_interval=app.harvest_poll_interval,
            harvest_poll_attempts=app.harvest_poll_attempts,
            max_units_per_attack=app.max_units_per_attack,
        )
