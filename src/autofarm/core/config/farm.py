from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from autofarm.core.types import RankFilter, ResourceTarget


class FarmConfig(BaseModel):
    """
    Per-engine farming configuration.

    Only mutable while the engine is stopped (see AutoFarmEngine.update_config).
    The `vip` flag picks the timing profile once, when the engine is built.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    vip: bool = Field(default=False, description="Fast timing tier")
    attack_players: bool = Field(default=False, description="Attack other players' bases")
    rank_filter: RankFilter = Field(default=RankFilter.ALL)
    resource_target: ResourceTarget = Field(default=ResourceTarget.LOWEST)

    def merged(self, partial: Mapping[str, Any]) -> "FarmConfig":
        """
        Return a validated copy with `partial` applied.

        model_copy(update=...) skips validation, so round-trip through
        model_validate instead.
        """
        return FarmConfig.model_validate({**self.model_dump(), **dict(partial)})
