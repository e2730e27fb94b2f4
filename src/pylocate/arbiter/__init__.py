"""Position arbitration layer.

Races a precise and an approximate positioning source against a deadline
and hands back the single best fix.
"""

from pylocate.arbiter.session import (
    ArbitrationSession,
    ArbitrationSettings,
    Outcome,
    PositionArbiter,
    SessionState,
)
from pylocate.arbiter.sources import PermissionProvider, PositioningSource

__all__ = [
    "ArbitrationSession",
    "ArbitrationSettings",
    "Outcome",
    "PermissionProvider",
    "PositionArbiter",
    "PositioningSource",
    "SessionState",
]
