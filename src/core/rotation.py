"""Rotator key eligibility guard.

A registered entry may rotate its ephemeral key once it has dwelt for at
least `min_dwell_seconds` since creation, and only while it is active:

    eligible  <=>  entry.active  and  now - entry.created_at >= min_dwell

Rotation never moves `created_at`, so once an entry becomes eligible it
stays eligible until retired.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .errors import (
    EntryInactiveError,
    RotationNotEligibleError,
    RotationTooSoonError,
)


MIN_DWELL_SECONDS = 3600


@dataclass(frozen=True)
class RotationDecision:
    eligible: bool
    rejection: Optional[str] = None
    retry_at: Optional[int] = None


def check_rotation(
    created_at: int,
    active: bool,
    now: int,
    min_dwell_seconds: int = MIN_DWELL_SECONDS,
) -> RotationDecision:
    """Evaluate eligibility without raising."""
    if not active:
        return RotationDecision(eligible=False, rejection=EntryInactiveError.reason)
    if now - created_at < min_dwell_seconds:
        return RotationDecision(
            eligible=False,
            rejection=RotationTooSoonError.reason,
            retry_at=created_at + min_dwell_seconds,
        )
    return RotationDecision(eligible=True)


def require_rotation(
    created_at: int,
    active: bool,
    now: int,
    min_dwell_seconds: int = MIN_DWELL_SECONDS,
) -> None:
    """Like ``check_rotation()`` but raises on rejection."""
    decision = check_rotation(created_at, active, now, min_dwell_seconds)
    if decision.eligible:
        return
    if decision.rejection == EntryInactiveError.reason:
        raise EntryInactiveError("entry is retired")
    if decision.rejection == RotationTooSoonError.reason:
        assert decision.retry_at is not None
        raise RotationTooSoonError(
            f"rotation allowed at {decision.retry_at}, now {now}",
            retry_at=decision.retry_at,
        )
    raise RotationNotEligibleError(decision.rejection or "")
