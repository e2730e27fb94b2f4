"""Data models for pylocate."""

from pylocate.models._base import LocateBaseModel, now_ms, safe_float
from pylocate.models.fix import FixSource, PositionFix
from pylocate.models.location import SavedLocation

__all__ = [
    "FixSource",
    "LocateBaseModel",
    "PositionFix",
    "SavedLocation",
    "now_ms",
    "safe_float",
]
