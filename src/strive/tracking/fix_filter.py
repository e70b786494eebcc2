"""
Accept/reject rule for incoming GPS fixes.

A phone standing still reports a cloud of positions a few metres apart; adding
every one of them inflates the distance of a stationary user. Fixes that moved
less than the minimum from the last accepted point, or whose reported
horizontal accuracy is too poor, are dropped. The very first fix of a session
is always accepted so the track has an origin.
"""
from dataclasses import dataclass
from typing import Optional

from strive.tracking.geo import fix_distance
from strive.tracking.models import GPSFix

MIN_MOVEMENT_METERS = 5.0
MAX_ACCURACY_METERS = 30.0

FIRST_FIX = "first_fix"
ACCEPTED = "accepted"
TOO_CLOSE = "too_close"
INACCURATE = "inaccurate"


@dataclass(frozen=True)
class FilterDecision:
    accepted: bool
    reason: str
    distance_meters: float = 0.0  # from the previous accepted fix


class FixFilter:
    """Stateless filter; the caller supplies the previous accepted fix."""

    def __init__(
        self,
        min_movement_meters: float = MIN_MOVEMENT_METERS,
        max_accuracy_meters: float = MAX_ACCURACY_METERS,
    ):
        self.min_movement_meters = min_movement_meters
        self.max_accuracy_meters = max_accuracy_meters

    @classmethod
    def from_settings(cls, settings) -> "FixFilter":
        return cls(
            min_movement_meters=settings.min_movement_meters,
            max_accuracy_meters=settings.max_accuracy_meters,
        )

    def evaluate(self, previous: Optional[GPSFix], fix: GPSFix) -> FilterDecision:
        """
        Decide whether `fix` extends the track that ends at `previous`.

        Args:
            previous: last accepted fix of the session, or None.
            fix: the new raw fix.

        Returns:
            FilterDecision. distance_meters is the leg length to add to the
            running total when accepted.
        """
        if previous is None:
            return FilterDecision(accepted=True, reason=FIRST_FIX)

        distance = fix_distance(previous, fix)
        # NaN compares False, so a NaN distance is rejected as too close
        if not distance >= self.min_movement_meters:
            return FilterDecision(False, TOO_CLOSE, distance)
        if fix.accuracy is not None and fix.accuracy >= self.max_accuracy_meters:
            return FilterDecision(False, INACCURATE, distance)
        return FilterDecision(True, ACCEPTED, distance)

    def accept(self, previous: Optional[GPSFix], fix: GPSFix) -> bool:
        return self.evaluate(previous, fix).accepted
