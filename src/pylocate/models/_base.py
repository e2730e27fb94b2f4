"""Base model and parsing helpers shared by pylocate models.

Every model inherits from :class:`LocateBaseModel` which is frozen and
ignores unknown keys, so payloads from sources and rows from the store
can be validated directly.
"""

from __future__ import annotations

import math
import time
from typing import Any

from pydantic import BaseModel, ConfigDict

# Sentinel strings some providers use for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan"})


def safe_float(value: Any) -> float | None:
    """Convert *value* to a finite float, returning ``None`` on failure."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and value.strip() in _SENTINELS:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class LocateBaseModel(BaseModel):
    """Base for pylocate models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
