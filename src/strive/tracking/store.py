"""
Session state store: the durable record of an in-progress recording.

Two keys are kept in the underlying key-value store:

  @strive_session_data          SessionRecord JSON (flags, start, pause bookkeeping)
  @strive_background_locations  JSON array of accepted GPSFix, in append order

The foreground tracker and the background callback both append to the point
array; only the controller clears it (on start and on stop). Writes are
last-write-wins. Within one process an asyncio.Lock keeps read-modify-write
appends from interleaving across awaits.
"""
import asyncio
import json
import logging
from typing import Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError

from strive.tracking.errors import PersistenceFailure
from strive.tracking.models import GPSFix, SessionRecord

logger = logging.getLogger(__name__)

SESSION_KEY = "@strive_session_data"
POINTS_KEY = "@strive_background_locations"

_points_adapter = TypeAdapter(List[GPSFix])


class SessionStore:
    """Typed access to the session record and point sequence."""

    def __init__(self, kv):
        """
        Args:
            kv: any object with async get(key), set(key, value), remove(key)
                over strings (SqlKeyValueStore, or AsyncMock in tests).
        """
        self.kv = kv
        self._lock = asyncio.Lock()

    async def read_session(self) -> Optional[SessionRecord]:
        async with self._lock:
            raw = await self._get(SESSION_KEY)
        if raw is None:
            return None
        return self._parse_record(raw)

    async def write_session(self, record: SessionRecord) -> None:
        async with self._lock:
            await self._set(SESSION_KEY, record.model_dump_json())

    async def set_active(self, active: bool) -> Optional[SessionRecord]:
        """Flip the is_active flag of the stored record, if there is one."""
        async with self._lock:
            raw = await self._get(SESSION_KEY)
            if raw is None:
                return None
            record = self._parse_record(raw)
            record.is_active = active
            await self._set(SESSION_KEY, record.model_dump_json())
            return record

    async def read_points(self) -> List[GPSFix]:
        async with self._lock:
            return await self._read_points_unlocked()

    async def last_point(self) -> Optional[GPSFix]:
        points = await self.read_points()
        return points[-1] if points else None

    async def append_points(self, points: Iterable[GPSFix]) -> int:
        """
        Append fixes to the persisted sequence.

        Returns:
            Length of the persisted sequence after the append.
        """
        new_points = list(points)
        async with self._lock:
            existing = await self._read_points_unlocked()
            if not new_points:
                return len(existing)
            combined = existing + new_points
            await self._set(POINTS_KEY, _dump_points(combined))
            return len(combined)

    async def clear(self) -> None:
        """Remove both the session record and the point sequence."""
        async with self._lock:
            await self._remove(POINTS_KEY)
            await self._remove(SESSION_KEY)
        logger.debug("Session store cleared")

    # ─── Internal helpers ─────────────────────────────────────────────────────

    async def _read_points_unlocked(self) -> List[GPSFix]:
        raw = await self._get(POINTS_KEY)
        if raw is None:
            return []
        try:
            return _points_adapter.validate_json(raw)
        except ValidationError as exc:
            raise PersistenceFailure("stored point sequence is corrupt") from exc

    @staticmethod
    def _parse_record(raw: str) -> SessionRecord:
        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise PersistenceFailure("stored session record is corrupt") from exc

    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self.kv.get(key)
        except Exception as exc:
            raise PersistenceFailure(f"failed to read {key}") from exc

    async def _set(self, key: str, value: str) -> None:
        try:
            await self.kv.set(key, value)
        except Exception as exc:
            raise PersistenceFailure(f"failed to write {key}") from exc

    async def _remove(self, key: str) -> None:
        try:
            await self.kv.remove(key)
        except Exception as exc:
            raise PersistenceFailure(f"failed to remove {key}") from exc


def _dump_points(points: List[GPSFix]) -> str:
    return json.dumps([p.model_dump(mode="json") for p in points])
