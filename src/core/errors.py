"""Exception types for the mothership core.

Pure kernels raise these for conditions a caller can act on; plain
``TypeError``/``ValueError`` are reserved for malformed arguments.
"""

from __future__ import annotations


class MothershipError(Exception):
    """Base class for all domain errors raised by the core."""


class DerivationExhaustedError(MothershipError):
    """No bump in [0, 255] produced an off-curve address for the given seeds."""


class MiningFailedError(MothershipError):
    """The vanity search exhausted its nonce domain without a match."""

    def __init__(self, label: str, attempts: int) -> None:
        self.label = label
        self.attempts = attempts
        super().__init__(f"no vanity match for {label!r} after {attempts} nonces")


class DuplicateLabelError(MothershipError):
    """An active entry already holds this label (or cosmetic address)."""


class RotationNotEligibleError(MothershipError):
    """Rotation refused; ``reason`` is a stable machine-readable code."""

    reason = "not_eligible"


class EntryNotFoundError(RotationNotEligibleError):
    reason = "not_found"


class EntryInactiveError(RotationNotEligibleError):
    reason = "inactive"


class RotationTooSoonError(RotationNotEligibleError):
    reason = "too_soon"

    def __init__(self, message: str, retry_at: int) -> None:
        self.retry_at = retry_at
        super().__init__(message)


class InvalidIdentifierEncodingError(MothershipError, ValueError):
    """A caller-supplied identifier string is not canonical base58 of 32 bytes."""


class ArithmeticOverflowError(MothershipError, OverflowError):
    """A checked u64 computation does not fit its declared width."""
