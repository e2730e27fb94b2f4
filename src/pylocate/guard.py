"""Reject a user action while the same action is still running."""

from __future__ import annotations

import logging
from typing import Any

from pylocate.exceptions import LocateBusyError

_logger = logging.getLogger(__name__)


class _Hold:
    def __init__(self, active: set[str], key: str) -> None:
        self._active = active
        self._key = key

    async def __aenter__(self) -> None:
        if self._key in self._active:
            _logger.debug("Rejecting %s; already in progress", self._key)
            raise LocateBusyError(self._key)
        self._active.add(self._key)

    async def __aexit__(self, *exc: Any) -> None:
        self._active.discard(self._key)


class ActionGuard:
    """Track in-flight actions by key.

    Usage::

        async with guard.hold("check"):
            ...
    """

    def __init__(self) -> None:
        self._active: set[str] = set()

    def is_active(self, key: str) -> bool:
        return key in self._active

    def hold(self, key: str) -> _Hold:
        return _Hold(self._active, key)
