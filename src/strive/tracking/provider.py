"""
Location provider interface consumed by the recording core.

On a phone this is the platform location SDK. The core only needs the six
calls below; ReplayLocationProvider (replay.py) implements them over a
recorded CSV for the CLI and tests.
"""
import abc
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator

from strive.tracking.models import GPSFix


class PermissionStatus(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"


@dataclass(frozen=True)
class WatchOptions:
    min_interval_ms: int = 1000
    min_distance_m: float = 5.0


class LocationProvider(abc.ABC):
    @abc.abstractmethod
    async def request_foreground_permission(self) -> PermissionStatus:
        ...

    @abc.abstractmethod
    async def request_background_permission(self) -> PermissionStatus:
        ...

    @abc.abstractmethod
    async def get_current_fix(self) -> GPSFix:
        """Single best-effort fix for the current-location display."""

    @abc.abstractmethod
    def watch(self, options: WatchOptions) -> AsyncIterator[GPSFix]:
        """
        Live stream of fixes while the app is in the foreground.

        Fixes arrive in non-decreasing timestamp order. The subscription ends
        when the consuming task is cancelled. Raising from the iterator means
        the platform revoked or lost access mid-stream.
        """

    @abc.abstractmethod
    async def start_background_updates(self, options: WatchOptions) -> None:
        """Register host-level delivery of fix batches while suspended."""

    @abc.abstractmethod
    async def stop_background_updates(self) -> None:
        ...
