from __future__ import annotations

import asyncio

from autofarm.core.config.farm import FarmConfig
from autofarm.core.engine.engine import AutoFarmEngine
from autofarm.core.engine.timing import EngineSettings
from autofarm.core.events.farm import CompleteEvent, ErrorEvent, FarmEvent, MoveEvent
from autofarm.core.events.system import StateChanged
from autofarm.core.types import Compass, Coordinate, FarmStatus


def _engine(service, clock, sleep, *, width: int = 3, height: int = 3, vip: bool = True) -> AutoFarmEngine:
    return AutoFarmEngine(
        actor_id="commander",
        start_position=Coordinate(1, 1),
        service=service,
        config=FarmConfig(vip=vip),
        settings=EngineSettings(grid_width=width, grid_height=height),
        clock=clock,
        sleep=sleep,
    )


def _run_to_completion(engine: AutoFarmEngine) -> None:
    async def scenario() -> None:
        engine.start()
        await engine.join()

    asyncio.run(scenario())


def test_full_grid_run_visits_every_tile_in_snake_order(service, clock, sleep) -> None:
    engine = _engine(service, clock, sleep)
    events: list[FarmEvent] = []
    engine.on_event(events.append)

    _run_to_completion(engine)

    assert [target for target, _ in service.moves] == [
        Coordinate(2, 1),
        Coordinate(3, 1),
        Coordinate(3, 2),
        Coordinate(2, 2),
        Coordinate(1, 2),
        Coordinate(1, 3),
        Coordinate(2, 3),
        Coordinate(3, 3),
    ]
    assert [d for _, d in service.moves] == [
        Compass.E, Compass.E, Compass.S, Compass.W, Compass.W, Compass.S, Compass.E, Compass.E,
    ]

    assert engine.get_state().status is FarmStatus.STOPPED
    assert engine.get_state().position == Coordinate(3, 3)
    assert engine.get_stats().tiles_visited == 8
    assert engine.get_stats().errors_encountered == 0

    completes = [e for e in events if isinstance(e, CompleteEvent)]
    assert [e.message for e in completes] == ["Entire map completed!", "Auto-farm stopped"]
    assert completes[-1].data["tiles_visited"] == 8


def test_events_are_ordered_by_sequence(service, clock, sleep) -> None:
    engine = _engine(service, clock, sleep, width=2, height=2)
    events: list[FarmEvent] = []
    engine.on_event(events.append)

    _run_to_completion(engine)

    sequences = [e.sequence for e in events]
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == len(sequences)
    assert isinstance(events[0], MoveEvent) and events[0].message == "Auto-farm started"


def test_move_mismatch_skips_forward_without_halting(service, clock, sleep) -> None:
    # The service leaves the actor on (1, 1) instead of (2, 1)
    service.mismatch[Coordinate(2, 1)] = Coordinate(1, 1)
    engine = _engine(service, clock, sleep, width=3, height=1)

    _run_to_completion(engine)

    assert service.moves == [
        (Coordinate(2, 1), Compass.E),
        (Coordinate(3, 1), Compass.E),
    ]
    stats = engine.get_stats()
    assert stats.tiles_visited == 1
    assert stats.errors_encountered == 0
    assert engine.get_state().position == Coordinate(3, 1)


def test_rejected_move_is_not_an_error(service, clock, sleep) -> None:
    service.reject_moves.add(Coordinate(2, 1))
    engine = _engine(service, clock, sleep, width=3, height=1)
    events: list[FarmEvent] = []
    engine.on_event(events.append)

    _run_to_completion(engine)

    assert engine.get_stats().tiles_visited == 1
    assert engine.get_stats().errors_encountered == 0
    assert not any(isinstance(e, ErrorEvent) for e in events)


def test_unexpected_fault_counts_error_and_run_continues(service, clock, sleep) -> None:
    service.broken_tiles.add(Coordinate(2, 1))
    engine = _engine(service, clock, sleep, width=3, height=1)
    events: list[FarmEvent] = []
    engine.on_event(events.append)

    _run_to_completion(engine)

    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert len(errors) == 1
    assert errors[0].position == Coordinate(2, 1)
    assert "exploded" in errors[0].message

    stats = engine.get_stats()
    assert stats.errors_encountered == 1
    assert stats.tiles_visited == 1


def test_inter_tile_delay_follows_timing_profile(service, clock, sleep) -> None:
    vip = _engine(service, clock, sleep, width=3, height=1, vip=True)
    _run_to_completion(vip)
    assert sleep.delays == [0.3, 0.3]

    sleep.delays.clear()
    basic = _engine(service, clock, sleep, width=3, height=1, vip=False)
    _run_to_completion(basic)
    assert sleep.delays == [0.5, 0.5]


def test_raising_host_callbacks_do_not_end_the_run(service, clock, sleep) -> None:
    engine = _engine(service, clock, sleep)

    def bad_stats(_stats) -> None:
        raise RuntimeError("stats sink down")

    def bad_event(_event) -> None:
        raise RuntimeError("event sink down")

    engine.on_stats(bad_stats)
    engine.on_event(bad_event)

    _run_to_completion(engine)

    assert len(service.moves) == 8
    assert engine.get_state().status is FarmStatus.STOPPED
    assert engine.get_stats().tiles_visited == 8
    assert engine.get_stats().errors_encountered == 0
    assert not engine.running


def test_raising_bus_subscriber_does_not_stop_the_walk(service, clock, sleep) -> None:
    engine = _engine(service, clock, sleep)
    calls = {"n": 0}

    def flaky(_event) -> None:
        calls["n"] += 1
        # 1st publication comes from start(); the 2nd is the first tile's state update
        if calls["n"] == 2:
            raise RuntimeError("observer crashed")

    engine.bus.subscribe(event_type=StateChanged.event_type, handler=flaky)

    _run_to_completion(engine)

    assert len(service.moves) == 8
    assert engine.get_state().status is FarmStatus.STOPPED
    assert engine.get_state().position == Coordinate(3, 3)
