from __future__ import annotations

import asyncio
from typing import Any, Mapping, Sequence

import requests
import structlog

from autofarm.core.types import Compass, Coordinate
from autofarm.services.base import (
    ActorProfile,
    ActorResources,
    AttackResult,
    MoveResult,
    Occupant,
    ServiceError,
    TileInfo,
    Unit,
)

log = structlog.get_logger()


def _dig(payload: Mapping[str, Any], *path: str) -> Any:
    cur: Any = payload
    for key in path:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _coordinate(raw: Any) -> Coordinate | None:
    if not isinstance(raw, Mapping):
        return None
    try:
        return Coordinate(int(raw["x"]), int(raw["y"]))
    except (KeyError, TypeError, ValueError):
        return None


def extract_position(payload: Mapping[str, Any]) -> Coordinate | None:
    """
    Pull the confirmed position out of a move response.

    The game has shipped several envelope shapes; try them in order.
    """
    for path in (
        ("player", "currentPosition"),
        ("data", "player", "currentPosition"),
        ("data", "newPosition"),
        ("newPosition",),
    ):
        pos = _coordinate(_dig(payload, *path))
        if pos is not None:
            return pos
    return None


def parse_resources(raw: Any) -> ActorResources:
    if not isinstance(raw, Mapping):
        return ActorResources()
    return ActorResources(
        metal=int(raw.get("metal") or 0),
        energy=int(raw.get("energy") or 0),
        items=int(raw.get("items") or 0),
    )


def parse_profile(actor_id: str, data: Mapping[str, Any]) -> ActorProfile:
    units = tuple(
        Unit(unit_id=str(u.get("id") or u.get("unitId")), strength=float(u.get("str") or 0))
        for u in data.get("units") or ()
        if isinstance(u, Mapping) and (u.get("id") or u.get("unitId"))
    )
    return ActorProfile(
        actor_id=actor_id,
        rank=int(data.get("rank") or 1),
        units=units,
        resources=parse_resources(data.get("resources")),
    )


def parse_tile(position: Coordinate, data: Mapping[str, Any]) -> TileInfo:
    occupant = None
    owner = data.get("baseOwner")
    if data.get("occupiedByBase") and isinstance(owner, Mapping) and owner.get("username"):
        occupant = Occupant(actor_id=str(owner["username"]), is_base=True)
    return TileInfo(position=position, terrain=str(data.get("terrain") or ""), occupant=occupant)


class HttpGameService:
    """
    GameService over the game's JSON HTTP API.

    Every endpoint answers {success, data?, error?}. success=false becomes a
    rejected result (or None for lookups); HTTP errors, timeouts and
    non-JSON bodies raise ServiceError.

    requests is blocking, so each call runs in a worker thread.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session if session is not None else requests.Session()

    def close(self) -> None:
        self._session.close()

    # ---------------- GameService ----------------

    async def move(self, actor_id: str, target: Coordinate, direction: Compass) -> MoveResult:
        payload = await self._call("POST", "/api/move", json={"username": actor_id, "direction": direction.value})
        if not payload.get("success"):
            return MoveResult(ok=False, reason=str(payload.get("error") or "move failed"))

        pos = extract_position(payload)
        if pos is None:
            log.warning("http.move_position_missing", keys=sorted(payload.keys()), target=target.as_dict())
        return MoveResult(ok=True, position=pos)

    async def inspect_tile(self, position: Coordinate) -> TileInfo | None:
        payload = await self._call("GET", "/api/tile", params={"x": position.x, "y": position.y})
        data = payload.get("data")
        if not payload.get("success") or not isinstance(data, Mapping):
            return None
        return parse_tile(position, data)

    async def trigger_harvest(self, actor_id: str, position: Coordinate) -> None:
        payload = await self._call("POST", "/api/harvest", json={"username": actor_id})
        if not payload.get("success"):
            # cooldowns land here; the resource poll decides what happened
            log.info("http.harvest_declined", x=position.x, y=position.y, error=payload.get("error"))

    async def get_actor_resources(self, actor_id: str) -> ActorResources:
        data = await self._player(actor_id)
        return parse_resources(data.get("resources"))

    async def attack(self, actor_id: str, target_actor_id: str, unit_ids: Sequence[str]) -> AttackResult:
        payload = await self._call(
            "POST",
            "/api/combat/infantry",
            json={"targetUsername": target_actor_id, "unitIds": list(unit_ids)},
        )
        if not payload.get("success"):
            return AttackResult(ok=False, reason=str(payload.get("error") or "combat failed"))

        battle = payload.get("battleLog") or {}
        loot = battle.get("resources") or {}
        return AttackResult(
            ok=True,
            won=battle.get("winner") == actor_id,
            metal_transferred=int(loot.get("metal") or 0),
            energy_transferred=int(loot.get("energy") or 0),
            experience_gained=int(battle.get("xpGained") or 0),
            units_lost=int(battle.get("unitsLost") or 0),
        )

    async def get_actor_profile(self, actor_id: str) -> ActorProfile:
        return parse_profile(actor_id, await self._player(actor_id))

    # ---------------- Internals ----------------

    async def _player(self, actor_id: str) -> Mapping[str, Any]:
        payload = await self._call("GET", "/api/player", params={"username": actor_id})
        data = payload.get("data")
        if not payload.get("success") or not isinstance(data, Mapping):
            raise ServiceError(f"player {actor_id!r} unavailable: {payload.get('error') or 'no data'}")
        return data

    async def _call(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        return await asyncio.to_thread(self._request, method, path, **kwargs)

    def _request(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            raise ServiceError(f"{method} {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ServiceError(f"{method} {path} returned non-JSON body", status_code=response.status_code) from exc

        # 4xx with an envelope is a business rejection; let the caller read it
        if response.status_code >= 500 or not isinstance(payload, Mapping):
            raise ServiceError(f"{method} {path} -> HTTP {response.status_code}", status_code=response.status_code)
        return payload
