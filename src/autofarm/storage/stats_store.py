from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import orjson
import structlog
from pydantic import ValidationError

from autofarm.stats.alltime import AllTimeStats, merge_session
from autofarm.stats.session import SessionStats

log = structlog.get_logger()


class AllTimeStatsStore:
    """
    JSON file holding all-time statistics, keyed by actor id.

    - load() never raises for a missing or unreadable file; it logs and
      falls back to zeroed totals
    - save() is atomic (tmp file + replace), so readers never see partial JSON
    """

    def __init__(self, *, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self, actor_id: str) -> AllTimeStats:
        raw = self._read_all().get(actor_id)
        if raw is None:
            return AllTimeStats()
        try:
            return AllTimeStats.model_validate(raw)
        except ValidationError as exc:
            log.warning("stats_store.invalid_record", actor_id=actor_id, error=str(exc))
            return AllTimeStats()

    def save(self, actor_id: str, stats: AllTimeStats) -> AllTimeStats:
        stamped = stats.model_copy(update={"last_updated": datetime.now(timezone.utc)})
        records = self._read_all()
        records[actor_id] = stamped.model_dump(mode="json")
        self._write_atomic(records)
        log.info("stats_store.saved", actor_id=actor_id, sessions=stamped.total_sessions_completed)
        return stamped

    def merge(self, actor_id: str, session: SessionStats) -> AllTimeStats:
        """
        Fold a finished session into the stored totals and persist them.
        """
        return self.save(actor_id, merge_session(self.load(actor_id), session))

    def reset(self, actor_id: str) -> None:
        records = self._read_all()
        if records.pop(actor_id, None) is not None:
            self._write_atomic(records)
            log.info("stats_store.reset", actor_id=actor_id)

    # ---------------- Internals ----------------

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}
        try:
            data = orjson.loads(self._path.read_bytes())
        except (OSError, orjson.JSONDecodeError) as exc:
            log.warning("stats_store.unreadable", path=str(self._path), error=str(exc))
            return {}
        if not isinstance(data, dict):
            log.warning("stats_store.unexpected_shape", path=str(self._path))
            return {}
        return data

    def _write_atomic(self, records: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(orjson.dumps(records, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS))
        tmp.replace(self._path)
