"""Fix acceptance policy.

This module contains *no* I/O or timers. The session feeds it fixes and
elapsed times and acts on the answers.
"""

from __future__ import annotations

from pylocate.models.fix import FixSource, PositionFix


def is_better_fix(candidate: PositionFix, best: PositionFix | None) -> bool:
    """Whether *candidate* should replace *best*.

    A fix without accuracy ranks below every fix with one, but still
    beats having nothing.
    """
    if best is None:
        return True
    if candidate.accuracy is None:
        return False
    if best.accuracy is None:
        return True
    return candidate.accuracy < best.accuracy


def accepts_precise(fix: PositionFix, good_accuracy: float) -> bool:
    """Precise fixes resolve immediately once good enough (inclusive)."""
    return fix.source == FixSource.PRECISE and fix.accuracy is not None and fix.accuracy <= good_accuracy


def accepts_approximate(
    fix: PositionFix,
    *,
    elapsed: float,
    grace_delay: float,
    acceptable_accuracy: float,
) -> bool:
    """Approximate fixes only count after the grace delay has passed.

    An approximate fix that shows up before its source was due to start
    is never accepted, whatever its accuracy.
    """
    return (
        fix.source == FixSource.APPROXIMATE
        and elapsed > grace_delay
        and fix.accuracy is not None
        and fix.accuracy <= acceptable_accuracy
    )
