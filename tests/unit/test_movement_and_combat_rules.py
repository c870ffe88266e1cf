from __future__ import annotations

import pytest

from autofarm.core.types import Compass, Coordinate, RankFilter, ResourceTarget
from autofarm.execution.combat import rank_filter_allows, select_units
from autofarm.execution.movement import compass_for
from autofarm.services.base import ActorResources, Unit


@pytest.mark.parametrize(
    "target,expected",
    [
        (Coordinate(5, 4), Compass.N),
        (Coordinate(6, 4), Compass.NE),
        (Coordinate(6, 5), Compass.E),
        (Coordinate(6, 6), Compass.SE),
        (Coordinate(5, 6), Compass.S),
        (Coordinate(4, 6), Compass.SW),
        (Coordinate(4, 5), Compass.W),
        (Coordinate(4, 4), Compass.NW),
    ],
)
def test_compass_for_neighbours(target: Coordinate, expected: Compass) -> None:
    assert compass_for(Coordinate(5, 5), target) is expected


def test_compass_for_same_cell_is_none() -> None:
    assert compass_for(Coordinate(3, 3), Coordinate(3, 3)) is None


def test_compass_for_far_target_uses_direction_sign() -> None:
    assert compass_for(Coordinate(1, 1), Coordinate(3, 1)) is Compass.E


def test_rank_filter() -> None:
    assert rank_filter_allows(RankFilter.ALL, attacker_rank=2, defender_rank=9)
    assert rank_filter_allows(RankFilter.LOWER, attacker_rank=3, defender_rank=2)
    assert not rank_filter_allows(RankFilter.LOWER, attacker_rank=3, defender_rank=3)
    assert rank_filter_allows(RankFilter.HIGHER, attacker_rank=3, defender_rank=4)
    assert not rank_filter_allows(RankFilter.HIGHER, attacker_rank=3, defender_rank=1)


def _units(*strengths: float) -> list[Unit]:
    return [Unit(unit_id=f"u{i}", strength=s) for i, s in enumerate(strengths)]


def test_select_units_strongest_first_and_capped() -> None:
    sel = select_units(
        _units(1, 7, 3, 9, 5),
        resources=ActorResources(),
        target=ResourceTarget.METAL,
        max_units=3,
    )

    assert sel.unit_ids == ["u3", "u1", "u4"]
    assert sel.intent == "metal"


def test_select_units_strategy_does_not_change_units() -> None:
    units = _units(4, 2, 8)
    picks = {
        t: select_units(units, resources=ActorResources(metal=5, energy=1), target=t, max_units=10)
        for t in ResourceTarget
    }

    assert {tuple(p.unit_ids) for p in picks.values()} == {("u2", "u0", "u1")}
    assert picks[ResourceTarget.ENERGY].intent == "energy"
    assert picks[ResourceTarget.LOWEST].intent == "energy"


def test_select_units_lowest_prefers_metal_on_tie() -> None:
    sel = select_units(_units(1), resources=ActorResources(metal=10, energy=10), target=ResourceTarget.LOWEST, max_units=10)

    assert sel.intent == "metal"


def test_select_units_empty() -> None:
    sel = select_units([], resources=ActorResources(), target=ResourceTarget.LOWEST, max_units=10)

    assert sel.units == ()
    assert sel.unit_ids == []
