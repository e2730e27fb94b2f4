"""Great-circle distance and nearest saved point lookup."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pylocate._constants import EARTH_RADIUS_M

T = TypeVar("T")

_DEG_TO_RAD = math.pi / 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Return the great-circle distance in meters between two points.

    Coordinates are decimal degrees. The result is non-negative,
    symmetric, and exactly ``0.0`` for coincident points.
    """
    lat1_rad = lat1 * _DEG_TO_RAD
    lat2_rad = lat2 * _DEG_TO_RAD
    delta_lat = (lat2 - lat1) * _DEG_TO_RAD
    delta_lon = (lon2 - lon1) * _DEG_TO_RAD

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    # Rounding can push h a hair outside [0, 1] for antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _coordinates(candidate: Any) -> tuple[float, float]:
    if isinstance(candidate, Mapping):
        return float(candidate["latitude"]), float(candidate["longitude"])
    return float(candidate.latitude), float(candidate.longitude)


@dataclass(frozen=True, slots=True)
class NearestMatch(Generic[T]):
    """Closest candidate and its distance in meters.

    ``candidate`` is ``None`` and ``distance`` is ``inf`` when there was
    nothing to compare against.
    """

    candidate: T | None
    distance: float

    def within(self, threshold: float) -> bool:
        """Whether the nearest candidate is at most *threshold* meters away."""
        return self.candidate is not None and self.distance <= threshold


def find_nearest(latitude: float, longitude: float, candidates: Iterable[T]) -> NearestMatch[T]:
    """Scan *candidates* once and return the closest one.

    Candidates are objects with ``latitude``/``longitude`` attributes or
    mappings with those keys. Ties keep the earliest candidate in the
    given order. No match/no-match judgment is made here; see
    :meth:`NearestMatch.within`.
    """
    best: T | None = None
    best_distance = math.inf
    for candidate in candidates:
        cand_lat, cand_lon = _coordinates(candidate)
        distance = haversine_distance(latitude, longitude, cand_lat, cand_lon)
        if distance < best_distance:
            best = candidate
            best_distance = distance
    return NearestMatch(candidate=best, distance=best_distance)
