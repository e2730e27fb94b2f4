"""Position arbitration: race a precise and an approximate source.

Owns:
- one :class:`ArbitrationSession` per request (no state shared between
  concurrent requests)
- the grace-delay and deadline timers of that session
- unsubscribing every source exactly once when the session resolves
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import math
from enum import StrEnum
from typing import Any

from pylocate._constants import (
    DEFAULT_APPROX_ACCEPTABLE_ACCURACY_M,
    DEFAULT_DEADLINE_S,
    DEFAULT_GRACE_DELAY_S,
    DEFAULT_PRECISE_GOOD_ACCURACY_M,
)
from pylocate.arbiter.policy import accepts_approximate, accepts_precise, is_better_fix
from pylocate.arbiter.sources import PermissionProvider, PositioningSource
from pylocate.config import LocateConfig
from pylocate.exceptions import (
    LocateConfigError,
    LocateError,
    LocatePermissionDeniedError,
    LocatePositionError,
    LocateSourceUnavailableError,
    LocateTimeoutError,
)
from pylocate.models.fix import PositionFix

_logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    IDLE = "idle"
    RACING = "racing"
    RESOLVED = "resolved"


class Outcome(StrEnum):
    SUCCESS = "success"
    TIMEOUT_SUCCESS = "timeout_success"
    FAILURE = "failure"


@dataclasses.dataclass(frozen=True)
class ArbitrationSettings:
    """Timing and accuracy thresholds of one arbitration session.

    Durations are seconds, accuracies are meters; all must be positive.
    """

    deadline: float = DEFAULT_DEADLINE_S
    grace_delay: float = DEFAULT_GRACE_DELAY_S
    precise_good_accuracy: float = DEFAULT_PRECISE_GOOD_ACCURACY_M
    approx_acceptable_accuracy: float = DEFAULT_APPROX_ACCEPTABLE_ACCURACY_M

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if not (math.isfinite(value) and value > 0):
                raise LocateConfigError(f"{field.name} must be a positive number, got {value}")

    @classmethod
    def from_config(cls, config: LocateConfig) -> ArbitrationSettings:
        return cls(
            deadline=config.deadline,
            grace_delay=config.grace_delay,
            precise_good_accuracy=config.precise_good_accuracy,
            approx_acceptable_accuracy=config.approx_acceptable_accuracy,
        )


class ArbitrationSession:
    """Single-use state machine resolving to one position fix.

    ``IDLE -> RACING -> RESOLVED``. Every callback and timer runs on the
    event loop thread, so the best-fix bookkeeping needs no locking; the
    ``state`` check at the top of each callback makes late fixes and
    late timers inert.
    """

    def __init__(
        self,
        *,
        precise: PositioningSource,
        approximate: PositioningSource,
        permissions: PermissionProvider,
        settings: ArbitrationSettings,
    ) -> None:
        self._precise = precise
        self._approximate = approximate
        self._permissions = permissions
        self.settings = settings

        self.state = SessionState.IDLE
        self.outcome: Outcome | None = None
        self.best_fix: PositionFix | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._future: asyncio.Future[PositionFix] | None = None
        self._started_at = 0.0
        self._subscriptions: list[tuple[PositioningSource, Any]] = []
        self._timers: list[asyncio.TimerHandle] = []

    @property
    def elapsed(self) -> float:
        """Seconds since the session started racing."""
        if self._loop is None:
            return 0.0
        return self._loop.time() - self._started_at

    async def run(self) -> PositionFix:
        """Race the sources and return the winning fix.

        Raises :class:`LocatePermissionDeniedError`,
        :class:`LocateSourceUnavailableError` or :class:`LocateTimeoutError`.
        """
        if self.state is not SessionState.IDLE:
            raise LocateError("An arbitration session can only run once")

        self._loop = asyncio.get_running_loop()
        self._future = self._loop.create_future()
        self._started_at = self._loop.time()
        _logger.debug("Position request started settings=%s", self.settings)

        if not self._permissions.has_permission():
            self._fail(LocatePermissionDeniedError())
        elif not (self._precise.is_enabled() or self._approximate.is_enabled()):
            self._fail(LocateSourceUnavailableError())
        else:
            self._start_racing()

        try:
            return await self._future
        finally:
            # The caller may cancel us mid-race; never leave sources running.
            if self.state is not SessionState.RESOLVED:
                self._release()
                self.outcome = Outcome.FAILURE

    def _start_racing(self) -> None:
        loop = self._loop
        assert loop is not None  # noqa: S101
        self.state = SessionState.RACING

        if self._precise.is_enabled():
            try:
                self._subscribe(self._precise)
            except LocatePermissionDeniedError as exc:
                self._fail(exc)
                return
            _logger.debug("Precise source started")
        else:
            _logger.debug("Precise source disabled; waiting for approximate source")

        if self.state is not SessionState.RACING:
            return

        if self._approximate.is_enabled():
            self._timers.append(loop.call_later(self.settings.grace_delay, self._start_approximate))
        self._timers.append(loop.call_later(self.settings.deadline, self._on_deadline))

    def _subscribe(self, source: PositioningSource) -> None:
        handle = source.subscribe(self.on_fix, self.on_error)
        if self.state is SessionState.RESOLVED:
            # Resolved synchronously from inside subscribe().
            source.unsubscribe(handle)
            return
        self._subscriptions.append((source, handle))

    def _start_approximate(self) -> None:
        if self.state is not SessionState.RACING:
            return
        try:
            self._subscribe(self._approximate)
        except LocateError as exc:
            _logger.warning("Approximate source failed to start: %s", exc)
            return
        _logger.debug("Approximate source started elapsed=%.3fs", self.elapsed)

    def on_fix(self, fix: PositionFix) -> None:
        """Handle a fix delivered by either source."""
        if self.state is not SessionState.RACING:
            return

        elapsed = self.elapsed
        _logger.debug(
            "Fix received source=%s accuracy=%s elapsed=%.3fs",
            fix.source,
            fix.accuracy,
            elapsed,
        )

        if is_better_fix(fix, self.best_fix):
            self.best_fix = fix

        if accepts_precise(fix, self.settings.precise_good_accuracy):
            self._succeed(fix, Outcome.SUCCESS)
            return

        if accepts_approximate(
            fix,
            elapsed=elapsed,
            grace_delay=self.settings.grace_delay,
            acceptable_accuracy=self.settings.approx_acceptable_accuracy,
        ):
            self._succeed(fix, Outcome.SUCCESS)

    def on_error(self, error: BaseException) -> None:
        """Source errors are informational; the deadline bounds the wait."""
        if self.state is not SessionState.RACING:
            return
        _logger.debug("Positioning source reported an error: %s", error)

    def _on_deadline(self) -> None:
        if self.state is not SessionState.RACING:
            return
        best = self.best_fix
        if best is not None:
            _logger.debug("Deadline reached; returning best fix accuracy=%s", best.accuracy)
            self._succeed(best, Outcome.TIMEOUT_SUCCESS)
        else:
            self._fail(LocateTimeoutError())

    def _succeed(self, fix: PositionFix, outcome: Outcome) -> None:
        self._release()
        self.outcome = outcome
        _logger.debug(
            "Position resolved outcome=%s lat=%s lon=%s accuracy=%s",
            outcome,
            fix.latitude,
            fix.longitude,
            fix.accuracy,
        )
        if self._future is not None and not self._future.done():
            self._future.set_result(fix)

    def _fail(self, error: LocatePositionError) -> None:
        self._release()
        self.outcome = Outcome.FAILURE
        _logger.debug("Position request failed reason=%s", error.reason)
        if self._future is not None and not self._future.done():
            self._future.set_exception(error)

    def _release(self) -> None:
        """Enter RESOLVED: cancel timers and unsubscribe every source once."""
        self.state = SessionState.RESOLVED
        timers, self._timers = self._timers, []
        for timer in timers:
            timer.cancel()
        subscriptions, self._subscriptions = self._subscriptions, []
        for source, handle in subscriptions:
            try:
                source.unsubscribe(handle)
            except Exception:
                _logger.debug("Unsubscribe from %s failed", source.kind, exc_info=True)


class PositionArbiter:
    """Answers "where am I right now" from two positioning sources.

    Usage::

        arbiter = PositionArbiter(precise=gps, approximate=network, permissions=perms)
        fix = await arbiter.acquire_position()
    """

    def __init__(
        self,
        *,
        precise: PositioningSource,
        approximate: PositioningSource,
        permissions: PermissionProvider,
        settings: ArbitrationSettings | None = None,
    ) -> None:
        self._precise = precise
        self._approximate = approximate
        self._permissions = permissions
        self.settings = settings or ArbitrationSettings()

    def new_session(self, **overrides: float | None) -> ArbitrationSession:
        """Create an idle session; ``None`` overrides keep the default."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        settings = dataclasses.replace(self.settings, **changes) if changes else self.settings
        return ArbitrationSession(
            precise=self._precise,
            approximate=self._approximate,
            permissions=self._permissions,
            settings=settings,
        )

    async def acquire_position(
        self,
        *,
        deadline: float | None = None,
        grace_delay: float | None = None,
        precise_good_accuracy: float | None = None,
        approx_acceptable_accuracy: float | None = None,
    ) -> PositionFix:
        """Run a fresh session and return its fix (see :class:`ArbitrationSession`)."""
        session = self.new_session(
            deadline=deadline,
            grace_delay=grace_delay,
            precise_good_accuracy=precise_good_accuracy,
            approx_acceptable_accuracy=approx_acceptable_accuracy,
        )
        return await session.run()
