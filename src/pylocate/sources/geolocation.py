"""Approximate positioning from a network geolocation service.

Speaks the Ichnaea geolocate protocol (BeaconDB, Google Geolocation API
and compatible services):

  - request:  ``POST {"considerIp": true}``
  - response: ``{"location": {"lat": ..., "lng": ...}, "accuracy": ...}``
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from pydantic import ValidationError

from pylocate._constants import DEFAULT_GEOLOCATION_INTERVAL_S
from pylocate._transport import Transport
from pylocate.arbiter.sources import ErrorCallback, FixCallback
from pylocate.exceptions import LocateError, LocateSourceUnavailableError, LocateTransportError
from pylocate.models._base import now_ms, safe_float
from pylocate.models.fix import FixSource, PositionFix

_logger = logging.getLogger(__name__)


def parse_geolocation_response(body: dict[str, Any], *, captured_at_ms: int | None = None) -> PositionFix:
    """Build an approximate fix from a geolocate response body."""
    location = body.get("location")
    if not isinstance(location, dict):
        raise LocateTransportError("Geolocation response missing 'location'")

    latitude = safe_float(location.get("lat"))
    longitude = safe_float(location.get("lng", location.get("lon")))
    if latitude is None or longitude is None:
        raise LocateTransportError(f"Geolocation response has no usable coordinates: {location}")

    try:
        return PositionFix(
            latitude=latitude,
            longitude=longitude,
            accuracy=body.get("accuracy"),
            source=FixSource.APPROXIMATE,
            captured_at_ms=captured_at_ms if captured_at_ms is not None else now_ms(),
        )
    except ValidationError as exc:
        raise LocateTransportError(f"Geolocation response is out of range: {location}") from exc


class NetworkGeolocationSource:
    """Polls a geolocation endpoint while subscribed.

    Each subscription is an asyncio task; unsubscribing cancels it.
    Request failures go to ``on_error`` and polling continues.
    """

    kind = FixSource.APPROXIMATE

    def __init__(
        self,
        url: str | None,
        transport: Transport | None,
        *,
        interval: float = DEFAULT_GEOLOCATION_INTERVAL_S,
        consider_ip: bool = True,
    ) -> None:
        self._url = url
        self._transport = transport
        self._interval = interval
        self._consider_ip = consider_ip

    def is_enabled(self) -> bool:
        return bool(self._url) and self._transport is not None

    async def locate(self) -> PositionFix:
        """Perform a single geolocation request."""
        if not self.is_enabled():
            raise LocateSourceUnavailableError("Network geolocation is not configured")
        assert self._transport is not None and self._url is not None  # noqa: S101
        body = await self._transport.post_json(self._url, {"considerIp": self._consider_ip})
        return parse_geolocation_response(body)

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> asyncio.Task[None]:
        if not self.is_enabled():
            raise LocateSourceUnavailableError("Network geolocation is not configured")
        return asyncio.get_running_loop().create_task(self._poll(on_fix, on_error))

    def unsubscribe(self, handle: asyncio.Task[None]) -> None:
        if not handle.done():
            handle.cancel()

    async def _poll(self, on_fix: FixCallback, on_error: ErrorCallback) -> None:
        while True:
            try:
                fix = await self.locate()
            except LocateError as exc:
                _logger.debug("Geolocation request failed: %s", exc)
                on_error(exc)
            except Exception as exc:
                _logger.warning("Unexpected geolocation failure: %r", exc)
                on_error(exc)
            else:
                on_fix(fix)
            await asyncio.sleep(self._interval)
