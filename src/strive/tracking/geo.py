"""
Great-circle distance helpers.

Haversine on a sphere of mean Earth radius. Good to well under 1% for the
point spacing a phone GPS produces (metres to a few hundred metres), which is
far below GPS noise anyway.
"""
import math
from typing import Sequence

from strive.tracking.models import GPSFix

EARTH_RADIUS_M = 6_371_000.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Distance in metres between two points given in decimal degrees.

    NaN inputs propagate to a NaN result; no validation is done here.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def fix_distance(a: GPSFix, b: GPSFix) -> float:
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def total_distance(points: Sequence[GPSFix]) -> float:
    """
    Sum of leg distances over consecutive pairs.

    Always a full pass over the sequence (O(n)); used whenever the point list
    is replaced wholesale so the running total cannot drift.
    """
    total = 0.0
    for prev, cur in zip(points, points[1:]):
        total += fix_distance(prev, cur)
    return total
