"""
ReplayLocationProvider: a LocationProvider that plays back recorded fixes.

Used by `python -m strive replay` and by the tests. The CSV layout is one fix
per row with a header:

    timestamp,latitude,longitude,altitude,accuracy,speed

timestamp is ISO-8601 or epoch milliseconds; altitude, accuracy and speed may
be empty. Rows that fail to parse are skipped.
"""
import asyncio
import csv
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Iterator, List, Optional, Sequence, Union

from pydantic import ValidationError

from strive.tracking.models import GPSFix
from strive.tracking.provider import LocationProvider, PermissionStatus, WatchOptions

logger = logging.getLogger(__name__)


def _parse_optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value.strip())


def _parse_timestamp(value: str) -> datetime:
    value = value.strip()
    if value.isdigit():
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def iter_csv_fixes(csv_path: Union[str, Path]) -> Iterator[GPSFix]:
    """Yield GPSFix rows from a recorded track CSV."""
    path = Path(csv_path)
    with path.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        for line_no, row in enumerate(reader, start=2):
            try:
                yield GPSFix(
                    latitude=float(row["latitude"]),
                    longitude=float(row["longitude"]),
                    altitude=_parse_optional_float(row.get("altitude")),
                    accuracy=_parse_optional_float(row.get("accuracy")),
                    speed=_parse_optional_float(row.get("speed")),
                    timestamp=_parse_timestamp(row["timestamp"]),
                )
            except (KeyError, TypeError, ValueError, ValidationError) as exc:
                logger.warning("Skipping %s line %d: %s", path.name, line_no, exc)


class ReplayLocationProvider(LocationProvider):
    """Delivers a fixed sequence of fixes through watch()."""

    def __init__(
        self,
        fixes: Sequence[GPSFix],
        *,
        foreground_permission: PermissionStatus = PermissionStatus.GRANTED,
        background_permission: PermissionStatus = PermissionStatus.GRANTED,
        interval_seconds: float = 0.0,
    ):
        """
        Args:
            fixes: fixes to deliver, in order.
            foreground_permission: answer to the foreground permission request.
            background_permission: answer to the background permission request.
            interval_seconds: delay between delivered fixes.
        """
        self.fixes: List[GPSFix] = list(fixes)
        self.foreground_permission = foreground_permission
        self.background_permission = background_permission
        self.interval_seconds = interval_seconds
        self.background_active = False
        self.delivered = 0  # position in `fixes`, shared across subscriptions
        self._exhausted = asyncio.Event()

    @classmethod
    def from_csv(cls, csv_path: Union[str, Path], **kwargs) -> "ReplayLocationProvider":
        return cls(list(iter_csv_fixes(csv_path)), **kwargs)

    @property
    def exhausted(self) -> asyncio.Event:
        """Set once every fix has been delivered."""
        return self._exhausted

    def clock(self) -> datetime:
        """Recorded time of the replay: the last delivered fix's timestamp."""
        if not self.fixes:
            return datetime.now(timezone.utc)
        return self.fixes[max(0, self.delivered - 1)].timestamp

    async def request_foreground_permission(self) -> PermissionStatus:
        return self.foreground_permission

    async def request_background_permission(self) -> PermissionStatus:
        return self.background_permission

    async def get_current_fix(self) -> GPSFix:
        if not self.fixes:
            raise LookupError("no fixes to replay")
        return self.fixes[min(self.delivered, len(self.fixes) - 1)]

    async def watch(self, options: WatchOptions) -> AsyncIterator[GPSFix]:
        while self.delivered < len(self.fixes):
            if self.interval_seconds:
                await asyncio.sleep(self.interval_seconds)
            else:
                await asyncio.sleep(0)
            fix = self.fixes[self.delivered]
            self.delivered += 1
            yield fix
        self._exhausted.set()

    async def start_background_updates(self, options: WatchOptions) -> None:
        self.background_active = True

    async def stop_background_updates(self) -> None:
        self.background_active = False
