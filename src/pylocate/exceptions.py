"""Custom exception hierarchy for pylocate."""

from __future__ import annotations

from enum import StrEnum


class FailureReason(StrEnum):
    """Why a position request could not produce a fix."""

    PERMISSION_DENIED = "permission_denied"
    SOURCE_UNAVAILABLE = "source_unavailable"
    TIMEOUT = "timeout"


class LocateError(Exception):
    """Base exception for all pylocate errors."""


class LocateConfigError(LocateError):
    """Invalid or missing configuration."""


class LocatePositionError(LocateError):
    """A position request resolved without a fix.

    The ``reason`` attribute tells callers which failure occurred so they
    can decide on messaging or a retry (for example re-prompting for
    permission).
    """

    reason: FailureReason

    def __init__(self, message: str, *, reason: FailureReason) -> None:
        self.reason = reason
        super().__init__(message)


class LocatePermissionDeniedError(LocatePositionError):
    """Location permission is not granted."""

    def __init__(self, message: str = "Location permission is required") -> None:
        super().__init__(message, reason=FailureReason.PERMISSION_DENIED)


class LocateSourceUnavailableError(LocatePositionError):
    """No positioning source is enabled."""

    def __init__(self, message: str = "No positioning source is enabled") -> None:
        super().__init__(message, reason=FailureReason.SOURCE_UNAVAILABLE)


class LocateTimeoutError(LocatePositionError):
    """The deadline passed before any fix arrived."""

    def __init__(self, message: str = "Position request timed out") -> None:
        super().__init__(message, reason=FailureReason.TIMEOUT)


class LocateInvalidInputError(LocateError, ValueError):
    """Missing or wrongly typed field at the persistence boundary."""


class LocateStoreError(LocateError):
    """Underlying SQLite failure."""


class LocateTransportError(LocateError):
    """HTTP-level failure (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class LocateBusyError(LocateError):
    """The same action is already in flight."""

    def __init__(self, action: str) -> None:
        self.action = action
        super().__init__(f"Action {action!r} is already in progress")
