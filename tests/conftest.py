"""Shared test fixtures."""
import asyncio
import math
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

# Import models so SQLModel.metadata knows about them
from strive.db.kv import KeyValueEntry  # noqa: F401
from strive.config import Settings
from strive.tracking.controller import SessionController
from strive.tracking.models import GPSFix
from strive.tracking.provider import LocationProvider, PermissionStatus, WatchOptions
from strive.tracking.store import SessionStore

T0 = datetime(2025, 6, 1, 7, 0, tzinfo=timezone.utc)
ORIGIN = (48.8566, 2.3522)
# One degree of latitude on the 6 371 km sphere
METERS_PER_DEG_LAT = 6_371_000.0 * math.pi / 180


def _make_fix(
    north_m: float = 0.0,
    east_m: float = 0.0,
    seconds: float = 0,
    accuracy: Optional[float] = 5.0,
    speed: Optional[float] = None,
) -> GPSFix:
    """A fix offset from ORIGIN by the given metres, `seconds` after T0."""
    lat0, lon0 = ORIGIN
    return GPSFix(
        latitude=lat0 + north_m / METERS_PER_DEG_LAT,
        longitude=lon0 + east_m / (METERS_PER_DEG_LAT * math.cos(math.radians(lat0))),
        accuracy=accuracy,
        speed=speed,
        timestamp=T0 + timedelta(seconds=seconds),
    )


class MemoryKeyValueStore:
    """Dict-backed async key-value store with switchable failures."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise OSError("storage unavailable")
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.data[key] = value

    async def remove(self, key: str) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        self.data.pop(key, None)


class QueueLocationProvider(LocationProvider):
    """
    Location provider driven by the test.

    push() feeds the live stream; settle() waits until the consumer has
    handled every pushed fix and asked for the next one.
    """

    def __init__(self):
        self.foreground_permission = PermissionStatus.GRANTED
        self.background_permission = PermissionStatus.GRANTED
        self.background_active = False
        self.background_starts = 0
        self.watch_calls = 0
        self.current = _make_fix()
        self.queue: asyncio.Queue = asyncio.Queue()

    def push(self, item) -> None:
        """Queue a GPSFix, or an exception to raise from the stream."""
        self.queue.put_nowait(item)

    async def settle(self) -> None:
        await asyncio.wait_for(self.queue.join(), timeout=2)
        for _ in range(5):
            await asyncio.sleep(0)

    async def request_foreground_permission(self) -> PermissionStatus:
        return self.foreground_permission

    async def request_background_permission(self) -> PermissionStatus:
        return self.background_permission

    async def get_current_fix(self) -> GPSFix:
        return self.current

    async def watch(self, options: WatchOptions):
        self.watch_calls += 1
        while True:
            item = await self.queue.get()
            try:
                if isinstance(item, BaseException):
                    raise item
                yield item
            finally:
                self.queue.task_done()

    async def start_background_updates(self, options: WatchOptions) -> None:
        self.background_active = True
        self.background_starts += 1

    async def stop_background_updates(self) -> None:
        self.background_active = False


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(name="make_fix")
def make_fix_fixture():
    return _make_fix


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="kv")
def kv_fixture() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture(name="store")
def store_fixture(kv) -> SessionStore:
    return SessionStore(kv)


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    # Long tick so the ticker never fires during a test
    return Settings(tick_seconds=3600.0, activity_api_url="http://api.test")


@pytest.fixture(name="provider")
def provider_fixture() -> QueueLocationProvider:
    return QueueLocationProvider()


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="api")
def api_fixture() -> AsyncMock:
    api = AsyncMock()
    api.create_activity = AsyncMock(return_value="act-1")
    return api


@pytest.fixture(name="updates")
def updates_fixture() -> list:
    return []


@pytest.fixture(name="errors")
def errors_fixture() -> list:
    return []


@pytest.fixture(name="controller")
def controller_fixture(provider, store, api, settings, clock, updates, errors):
    return SessionController(
        provider,
        store,
        api,
        settings=settings,
        clock=clock,
        on_update=updates.append,
        on_error=errors.append,
    )
