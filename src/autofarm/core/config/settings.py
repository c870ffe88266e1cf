from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    Single source of truth for:
    - environment selection
    - logging behavior
    - grid dimensions and engine pacing knobs
    - game service endpoint
    - all-time statistics location
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTOFARM_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # ---- Grid --------------------------------------------------------

    grid_width: int = Field(default=150, ge=1, description="Map width in tiles")
    grid_height: int = Field(default=150, ge=1, description="Map height in tiles")

    # ---- Engine pacing -----------------------------------------------

    stats_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between live stats ticks while a run is active",
    )
    harvest_poll_interval: float = Field(
        default=0.2,
        gt=0,
        description="Seconds between resource polls while verifying a harvest",
    )
    harvest_poll_attempts: int = Field(
        default=15,
        ge=1,
        description="Resource polls before a harvest is treated as a no-op",
    )
    max_units_per_attack: int = Field(default=10, ge=1)

    # ---- Game service ------------------------------------------------

    game_api_url: str = Field(default="http://localhost:3000")
    request_timeout: float = Field(default=10.0, gt=0)

    # ---- Persistence -------------------------------------------------

    stats_path: Path = Field(
        default=Path("autofarm_stats.json"),
        description="JSON file holding all-time statistics",
    )


# Singleton settings object
settings = AppSettings()
