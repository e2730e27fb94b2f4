"""Structural interfaces the arbiter consumes.

Having protocols here makes it easy to pass test doubles while keeping
the production sources (:mod:`pylocate.sources`) concrete.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

from pylocate.models.fix import FixSource, PositionFix

FixCallback = Callable[[PositionFix], None]
ErrorCallback = Callable[[BaseException], None]


class PermissionProvider(Protocol):
    def has_permission(self) -> bool: ...

    async def request_permission(self) -> bool: ...


class PositioningSource(Protocol):
    """A provider of position fixes.

    Callbacks must run on the event loop that owns the subscribing
    session. ``unsubscribe`` on a handle that is no longer active is a
    no-op.
    """

    kind: FixSource

    def is_enabled(self) -> bool: ...

    def subscribe(self, on_fix: FixCallback, on_error: ErrorCallback) -> Any: ...

    def unsubscribe(self, handle: Any) -> None: ...
