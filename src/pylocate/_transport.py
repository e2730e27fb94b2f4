"""HTTP JSON transport used by the network geolocation source."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pylocate import __version__
from pylocate.exceptions import LocateTransportError

_logger = logging.getLogger(__name__)

USER_AGENT = f"pylocate/{__version__}"


class Transport(Protocol):
    """Structural transport interface used by HTTP-backed sources.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`JsonTransport`) concrete.
    """

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        ...


class JsonTransport:
    """POST JSON bodies and decode JSON object replies."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    async def post_json(self, url: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json; charset=UTF-8",
            "user-agent": USER_AGENT,
        }

        _logger.debug("POST %s", url)

        try:
            async with self._http.post(
                url,
                data=json.dumps(dict(payload), separators=(",", ":")),
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise LocateTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except LocateTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise LocateTransportError(f"Request to {url} failed: {exc}", url=url) from exc
        except (UnicodeDecodeError, LookupError) as exc:
            raise LocateTransportError(f"Undecodable response from {url}: {exc}", url=url) from exc

        try:
            body: Any = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LocateTransportError(f"Invalid JSON from {url}: {text[:200]}", url=url) from exc

        if not isinstance(body, dict):
            raise LocateTransportError(f"Response from {url} is not a JSON object", url=url)
        return body
