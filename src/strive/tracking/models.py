"""
Data types for the GPS recording core.

Two families live here:

  - pydantic models (GPSFix, SessionRecord, ActivitySummary) for anything that
    is serialized, either to the durable session store or to the activity API.
  - plain dataclasses for in-memory controller state. The controller's state is
    exactly one of Idle / Recording / Paused, so "paused without a pause time"
    or "idle with points" cannot be represented.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(str, Enum):
    RUNNING = "running"
    CYCLING = "cycling"
    WALKING = "walking"
    HIKING = "hiking"

    @property
    def label(self) -> str:
        return _ACTIVITY_LABELS[self]


_ACTIVITY_LABELS = {
    ActivityType.RUNNING: "Course",
    ActivityType.CYCLING: "Vélo",
    ActivityType.WALKING: "Marche",
    ActivityType.HIKING: "Randonnée",
}


class SessionStatus(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


class AppState(str, Enum):
    """Host lifecycle states delivered by the presence notifier."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


class GPSFix(BaseModel):
    """One location sample as delivered by the location provider."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    altitude: Optional[float] = None  # metres
    accuracy: Optional[float] = None  # horizontal, metres
    speed: Optional[float] = None  # m/s; negative means unknown on some platforms
    timestamp: datetime


class SessionRecord(BaseModel):
    """Durable form of the session flags, shared with the background callback."""

    is_active: bool = False
    is_paused: bool = False
    activity_type: ActivityType = ActivityType.RUNNING
    start_time: Optional[datetime] = None
    paused_duration: int = 0  # seconds
    last_pause_time: Optional[datetime] = None


class ActivitySummary(BaseModel):
    """Finalized output of a session, posted to the activity API."""

    model_config = ConfigDict(populate_by_name=True)

    activity_type: ActivityType
    points: List[GPSFix] = Field(alias="gps_points")
    distance_meters: float = Field(alias="distance")
    duration_seconds: int = Field(alias="duration")
    avg_speed_kmh: float = Field(alias="avg_speed")
    start_time: datetime
    end_time: datetime

    def to_payload(self) -> dict:
        """JSON-ready dict using the activity API's field names."""
        return self.model_dump(mode="json", by_alias=True)


# ─── In-memory state ──────────────────────────────────────────────────────────

@dataclass
class TrackingSession:
    """The in-progress recording held by the controller."""

    activity_type: ActivityType
    start_time: datetime
    paused_duration_seconds: int = 0
    points: List[GPSFix] = field(default_factory=list)  # cache of the durable sequence
    distance_meters: float = 0.0

    @property
    def last_point(self) -> Optional[GPSFix]:
        return self.points[-1] if self.points else None


@dataclass
class Idle:
    status = SessionStatus.IDLE


@dataclass
class Recording:
    session: TrackingSession
    status = SessionStatus.RECORDING


@dataclass
class Paused:
    session: TrackingSession
    paused_at: datetime
    status = SessionStatus.PAUSED


RecorderState = Union[Idle, Recording, Paused]


@dataclass
class LiveMetrics:
    """Presentation snapshot pushed to the UI on every tick and fix."""

    status: SessionStatus
    activity_type: Optional[ActivityType] = None
    distance_meters: float = 0.0
    duration_seconds: int = 0
    current_speed_kmh: float = 0.0
    point_count: int = 0
    current_fix: Optional[GPSFix] = None


@dataclass
class SavedActivity:
    activity_id: str
    summary: ActivitySummary


# ─── Derived metrics ──────────────────────────────────────────────────────────

def elapsed_seconds(start_time: datetime, now: datetime, paused_duration: int) -> int:
    """Whole seconds since start minus accumulated pause time, never negative."""
    total = math.floor((now - start_time).total_seconds())
    return max(0, total - paused_duration)


def pause_length_seconds(paused_at: datetime, now: datetime) -> int:
    return max(0, math.floor((now - paused_at).total_seconds()))


def average_speed_kmh(distance_meters: float, duration_seconds: float) -> float:
    """Average speed in km/h; 0 when no time has elapsed."""
    if duration_seconds <= 0:
        return 0.0
    return (distance_meters / 1000.0) / (duration_seconds / 3600.0)
