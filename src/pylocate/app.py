"""Application flows: save the current position, check it against saved ones.

The app wires the store, the position arbiter and the proximity matcher
together. It never retries: every failure propagates to the caller,
which owns user-facing messaging.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pylocate._transport import JsonTransport
from pylocate.arbiter.session import ArbitrationSettings, PositionArbiter
from pylocate.arbiter.sources import PermissionProvider
from pylocate.config import LocateConfig
from pylocate.exceptions import LocateError, LocateInvalidInputError, LocatePermissionDeniedError, LocateStoreError
from pylocate.geo import find_nearest
from pylocate.guard import ActionGuard
from pylocate.models.fix import PositionFix
from pylocate.models.location import SavedLocation
from pylocate.permissions import PromptPermission
from pylocate.share import format_location_list
from pylocate.sources.geolocation import NetworkGeolocationSource
from pylocate.sources.owntracks import OwnTracksSource
from pylocate.store import LocationStore

_logger = logging.getLogger(__name__)

_SAVE_ACTION = "save"
_CHECK_ACTION = "check"


@dataclass(frozen=True, slots=True)
class MatchReport:
    """Result of comparing the current position with saved locations."""

    position: PositionFix
    nearest: SavedLocation | None
    distance: float
    threshold: float

    @property
    def matched(self) -> bool:
        return self.nearest is not None and self.distance <= self.threshold


class LocateApp:
    """Save and check locations.

    Usage::

        async with LocateApp(LocateConfig.from_env()) as app:
            saved = await app.save_location("Home")
            report = await app.check_location()
    """

    def __init__(
        self,
        config: LocateConfig,
        *,
        store: LocationStore | None = None,
        arbiter: PositionArbiter | None = None,
        permissions: PermissionProvider | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config
        self._store = store if store is not None else LocationStore(config.db_path)
        self._opened_store = False
        self._permissions: PermissionProvider = permissions if permissions is not None else PromptPermission()
        self._arbiter = arbiter
        self._external_session = http_session is not None
        self._http_session = http_session
        self._guard = ActionGuard()
        self._locations: list[SavedLocation] = []

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LocateApp:
        if not self._store.is_open:
            self._store.open()
            self._opened_store = True
        try:
            if self._arbiter is None:
                self._arbiter = self._build_arbiter()
            self.refresh()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if self._opened_store:
            self._store.close()
            self._opened_store = False

    def _build_arbiter(self) -> PositionArbiter:
        config = self._config
        transport: JsonTransport | None = None
        if config.geolocation_url:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            transport = JsonTransport(self._http_session)
        return PositionArbiter(
            precise=OwnTracksSource.from_config(config),
            approximate=NetworkGeolocationSource(
                config.geolocation_url,
                transport,
                interval=config.geolocation_interval,
            ),
            permissions=self._permissions,
            settings=ArbitrationSettings.from_config(config),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_arbiter(self) -> PositionArbiter:
        if self._arbiter is None:
            raise LocateError("App not initialized. Use 'async with LocateApp(...) as app:'")
        return self._arbiter

    async def _require_permission(self) -> None:
        if not await self._permissions.request_permission():
            raise LocatePermissionDeniedError()

    # ------------------------------------------------------------------
    # Saved locations
    # ------------------------------------------------------------------

    @property
    def locations(self) -> tuple[SavedLocation, ...]:
        """Cached snapshot from the last :meth:`refresh`; may be stale."""
        return tuple(self._locations)

    def refresh(self) -> list[SavedLocation]:
        """Reload the snapshot from the store."""
        self._locations = self._store.list_all()
        _logger.debug("Loaded %d saved locations", len(self._locations))
        return list(self._locations)

    async def save_location(self, name: str) -> SavedLocation:
        """Acquire the current position and store it under *name*."""
        label = name.strip() if isinstance(name, str) else ""
        if not label:
            raise LocateInvalidInputError("Location name is required")

        async with self._guard.hold(_SAVE_ACTION):
            await self._require_permission()
            fix = await self._require_arbiter().acquire_position()
            _logger.debug("Saving location name=%s lat=%s lon=%s", label, fix.latitude, fix.longitude)

            timestamp = datetime.now(UTC).isoformat()
            location_id = self._store.create(fix.latitude, fix.longitude, timestamp, label)
            self.refresh()

        saved = self._store.get(location_id)
        if saved is None:
            raise LocateStoreError(f"Location {location_id} vanished after insert")
        return saved

    async def check_location(self, threshold: float | None = None) -> MatchReport:
        """Compare the current position with the cached snapshot."""
        limit = self._config.match_threshold if threshold is None else threshold
        if not (math.isfinite(limit) and limit >= 0):
            raise LocateInvalidInputError(f"threshold must be a non-negative number, got {limit}")

        async with self._guard.hold(_CHECK_ACTION):
            await self._require_permission()
            fix = await self._require_arbiter().acquire_position()
            _logger.debug("Checking location lat=%s lon=%s", fix.latitude, fix.longitude)

            nearest = find_nearest(fix.latitude, fix.longitude, self._locations)
            report = MatchReport(
                position=fix,
                nearest=nearest.candidate,
                distance=nearest.distance,
                threshold=limit,
            )
        _logger.debug("Check result matched=%s distance=%.1f", report.matched, report.distance)
        return report

    def delete_location(self, location_id: int) -> bool:
        """Delete a saved location; ``False`` when it did not exist."""
        deleted = self._store.delete_by_id(location_id)
        self.refresh()
        return deleted

    def share_text(self) -> str:
        """Formatted list of the snapshot for sharing."""
        if not self._locations:
            raise LocateInvalidInputError("No saved locations to share")
        return format_location_list(self._locations)
