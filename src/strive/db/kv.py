"""
Durable string key-value store on a single SQLModel table.

This is the process-independent storage the recording core writes its session
record and accepted points to. The foreground process and the background
location callback open their own store over the same database, so whatever
one writes the other sees after a suspend/resume cycle.

SQLAlchemy is synchronous; each call runs in the default thread-pool executor
so the event loop keeps delivering location fixes and timer ticks.
"""
import asyncio
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, Session, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueEntry(SQLModel, table=True):
    """One stored value. Writes replace the previous value (last write wins)."""

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=_utcnow)


class SqlKeyValueStore:
    """Async get/set/remove over KeyValueEntry rows."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result) with the
                    KeyValueEntry table created.
        """
        self.engine = engine

    async def _run(self, fn, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)

    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        return await self._run(self._get_sync, key)

    async def set(self, key: str, value: str) -> None:
        await self._run(self._set_sync, key, value)

    async def remove(self, key: str) -> None:
        """Delete the key. Removing a missing key is not an error."""
        await self._run(self._remove_sync, key)

    # ─── Blocking helpers ─────────────────────────────────────────────────────

    def _get_sync(self, key: str) -> Optional[str]:
        with Session(self.engine) as s:
            entry = s.get(KeyValueEntry, key)
            return entry.value if entry else None

    def _set_sync(self, key: str, value: str) -> None:
        with Session(self.engine) as s:
            entry = s.get(KeyValueEntry, key)
            if entry:
                entry.value = value
                entry.updated_at = _utcnow()
            else:
                entry = KeyValueEntry(key=key, value=value)
            s.add(entry)
            s.commit()

    def _remove_sync(self, key: str) -> None:
        with Session(self.engine) as s:
            entry = s.get(KeyValueEntry, key)
            if entry:
                s.delete(entry)
                s.commit()
