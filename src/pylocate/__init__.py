"""pylocate - save labelled GPS positions and match the current one against them."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pylocate")
except PackageNotFoundError:
    __version__ = "0+local"

from pylocate.app import LocateApp, MatchReport
from pylocate.arbiter import (
    ArbitrationSession,
    ArbitrationSettings,
    Outcome,
    PositionArbiter,
    SessionState,
)
from pylocate.config import LocateConfig
from pylocate.exceptions import (
    FailureReason,
    LocateBusyError,
    LocateConfigError,
    LocateError,
    LocateInvalidInputError,
    LocatePermissionDeniedError,
    LocatePositionError,
    LocateSourceUnavailableError,
    LocateStoreError,
    LocateTimeoutError,
    LocateTransportError,
)
from pylocate.geo import NearestMatch, find_nearest, haversine_distance
from pylocate.models import FixSource, PositionFix, SavedLocation
from pylocate.store import LocationStore

__all__ = [
    "__version__",
    "ArbitrationSession",
    "ArbitrationSettings",
    "FailureReason",
    "FixSource",
    "LocateApp",
    "LocateBusyError",
    "LocateConfig",
    "LocateConfigError",
    "LocateError",
    "LocateInvalidInputError",
    "LocatePermissionDeniedError",
    "LocatePositionError",
    "LocateSourceUnavailableError",
    "LocateStoreError",
    "LocateTimeoutError",
    "LocateTransportError",
    "LocationStore",
    "MatchReport",
    "NearestMatch",
    "Outcome",
    "PositionArbiter",
    "PositionFix",
    "SavedLocation",
    "SessionState",
    "find_nearest",
    "haversine_distance",
]
