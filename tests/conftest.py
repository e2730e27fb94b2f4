from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from pylocate.models.fix import FixSource, PositionFix
from pylocate.permissions import StaticPermission


class FakeSource:
    """Positioning source that emits fixes on demand."""

    def __init__(self, kind: FixSource, *, enabled: bool = True) -> None:
        self.kind = kind
        self.enabled = enabled
        self.subscribers: dict[int, tuple[Callable[[PositionFix], None], Callable[[BaseException], None]]] = {}
        self.subscribe_calls = 0
        self.unsubscribe_calls = 0
        self.subscribe_error: Exception | None = None
        self._next_handle = 0

    @property
    def active(self) -> bool:
        return bool(self.subscribers)

    def is_enabled(self) -> bool:
        return self.enabled

    def subscribe(self, on_fix: Callable[[PositionFix], None], on_error: Callable[[BaseException], None]) -> int:
        self.subscribe_calls += 1
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self._next_handle += 1
        self.subscribers[self._next_handle] = (on_fix, on_error)
        return self._next_handle

    def unsubscribe(self, handle: Any) -> None:
        self.unsubscribe_calls += 1
        self.subscribers.pop(handle, None)

    def emit(self, accuracy: float | None, *, latitude: float = 10.0, longitude: float = 20.0) -> PositionFix:
        fix = PositionFix(latitude=latitude, longitude=longitude, accuracy=accuracy, source=self.kind)
        for on_fix, _on_error in list(self.subscribers.values()):
            on_fix(fix)
        return fix

    def fail(self, error: BaseException) -> None:
        for _on_fix, on_error in list(self.subscribers.values()):
            on_error(error)


@pytest.fixture
def precise() -> FakeSource:
    return FakeSource(FixSource.PRECISE)


@pytest.fixture
def approximate() -> FakeSource:
    return FakeSource(FixSource.APPROXIMATE)


@pytest.fixture
def granted() -> StaticPermission:
    return StaticPermission(True)
