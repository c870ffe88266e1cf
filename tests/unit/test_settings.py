from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from autofarm.core.config.farm import FarmConfig
from autofarm.core.config.settings import AppSettings
from autofarm.core.engine.timing import BASIC_PROFILE, VIP_PROFILE, EngineSettings, profile_for
from autofarm.core.types import RankFilter, ResourceTarget


def test_app_settings_read_prefixed_environment(monkeypatch) -> None:
    monkeypatch.setenv("AUTOFARM_GRID_WIDTH", "40")
    monkeypatch.setenv("AUTOFARM_GAME_API_URL", "http://game.test:8080")
    monkeypatch.setenv("AUTOFARM_STATS_PATH", "/tmp/farm.json")

    s = AppSettings()

    assert s.grid_width == 40
    assert s.grid_height == 150
    assert s.game_api_url == "http://game.test:8080"
    assert s.stats_path == Path("/tmp/farm.json")


def test_engine_settings_from_app() -> None:
    app = AppSettings(grid_width=10, grid_height=12, harvest_poll_attempts=4, max_units_per_attack=2)

    es = EngineSettings.from_app(app)

    assert (es.grid_width, es.grid_height) == (10, 12)
    assert es.harvest_poll_attempts == 4
    assert es.max_units_per_attack == 2
    assert es.harvest_poll_interval == 0.2


def test_engine_settings_validation() -> None:
    with pytest.raises(ValueError):
        EngineSettings(grid_width=0)
    with pytest.raises(ValueError):
        EngineSettings(harvest_poll_attempts=0)


def test_timing_profiles() -> None:
    assert profile_for(vip=True) is VIP_PROFILE
    assert profile_for(vip=False) is BASIC_PROFILE
    assert (VIP_PROFILE.tile_delay, VIP_PROFILE.harvest_extra_delay) == (0.3, 0.0)
    assert BASIC_PROFILE.tile_delay + BASIC_PROFILE.harvest_extra_delay == pytest.approx(2.5)


def test_farm_config_defaults_and_merge() -> None:
    cfg = FarmConfig()
    assert cfg.vip is False
    assert cfg.attack_players is False
    assert cfg.rank_filter is RankFilter.ALL
    assert cfg.resource_target is ResourceTarget.LOWEST

    merged = cfg.merged({"resource_target": "energy"})
    assert merged.resource_target is ResourceTarget.ENERGY
    assert cfg.resource_target is ResourceTarget.LOWEST

    with pytest.raises(ValidationError):
        cfg.merged({"vip": "sometimes"})
