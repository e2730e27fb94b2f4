"""Position fix model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from pylocate.models._base import LocateBaseModel, now_ms, safe_float


class FixSource(StrEnum):
    """Which kind of positioning source produced a fix."""

    PRECISE = "precise"
    APPROXIMATE = "approximate"


class PositionFix(LocateBaseModel):
    """A single positioning result.

    Fixes are ephemeral: the arbiter hands one to its caller, which reads
    the coordinates and drops it. They are never persisted as-is.

    Parameters
    ----------
    latitude : float
        Latitude in decimal degrees.
    longitude : float
        Longitude in decimal degrees.
    accuracy : float or None
        Estimated error radius in meters; smaller is better. ``None``
        when the source did not report one (negative or NaN values are
        treated as not reported).
    source : FixSource
        Source kind that produced the fix.
    captured_at_ms : int
        Epoch milliseconds when the fix was captured.
    """

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    accuracy: float | None = None
    source: FixSource
    captured_at_ms: int = Field(default_factory=now_ms)

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float | None:
        parsed = safe_float(value)
        if parsed is None or parsed < 0:
            return None
        return parsed

    @property
    def has_accuracy(self) -> bool:
        return self.accuracy is not None
