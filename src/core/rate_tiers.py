"""Fibonacci-weighted tier schedule for transfer velocity and size caps.

A valuation (market cap in base units) is mapped onto one of N tiers with
closed-below intervals `[threshold_i, threshold_{i+1})`:
  - below every threshold → tier 0
  - at or above the last threshold → tier N-1

Per-tier observables:
  velocity_limit = velocity_weight[tier] * unit_scale
  size_cap       = supply * (base_bps + cap_weight_bps[tier]) / 10000
  size_cap       = supply * max_bps_at_top / 10000   (valuation >= override)

All divisions floor, so caps are biased under, never over. Both limits are
monotone non-decreasing in valuation because the weight columns are.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
from typing import Tuple

from ..state.canonical import checked_mul, checked_mul_div, require_u64


BPS_DENOM = 10_000
LAMPORTS_PER_SOL = 1_000_000_000

# Reference schedule, thresholds in whole SOL.
FIB_MCAP_THRESHOLDS_SOL = (
    1_000_000, 3_000_000, 7_000_000, 15_000_000,
    30_000_000, 70_000_000, 150_000_000, 300_000_000,
)
FIB_VELOCITY_SOL = (1, 3, 7, 15, 30, 70, 150, 300)
FIB_TIERS = (1, 2, 3, 5, 8, 13, 21, 34)
FIB_START_BPS = 1
MAX_SWAP_BPS_AT_TOP = 100


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


@dataclass(frozen=True)
class TierTable:
    """Immutable tier schedule; thresholds are in valuation base units."""

    thresholds: Tuple[int, ...]
    velocity_weights: Tuple[int, ...]
    cap_weights_bps: Tuple[int, ...]
    base_bps: int = FIB_START_BPS
    max_bps_at_top: int = MAX_SWAP_BPS_AT_TOP
    unit_scale: int = LAMPORTS_PER_SOL

    def __post_init__(self) -> None:
        for name in ("thresholds", "velocity_weights", "cap_weights_bps"):
            col = tuple(getattr(self, name))
            object.__setattr__(self, name, col)
            for v in col:
                if not _is_int(v):
                    raise TypeError(f"{name} must hold ints: {v!r}")
                if v < 0:
                    raise ValueError(f"{name} must be non-negative: {v}")
        n = len(self.thresholds)
        if n == 0:
            raise ValueError("tier table must have at least one tier")
        if len(self.velocity_weights) != n or len(self.cap_weights_bps) != n:
            raise ValueError("tier table columns must have equal length")
        for a, b in zip(self.thresholds, self.thresholds[1:]):
            if not a < b:
                raise ValueError(f"thresholds must be strictly increasing: {a} >= {b}")
        for name in ("velocity_weights", "cap_weights_bps"):
            col = getattr(self, name)
            for a, b in zip(col, col[1:]):
                if a > b:
                    raise ValueError(f"{name} must be non-decreasing: {a} > {b}")
        for name in ("base_bps", "max_bps_at_top", "unit_scale"):
            if not _is_int(getattr(self, name)):
                raise TypeError(f"{name} must be an int")
        if self.unit_scale <= 0:
            raise ValueError(f"unit_scale must be positive: {self.unit_scale}")
        if not (0 <= self.max_bps_at_top <= BPS_DENOM):
            raise ValueError(f"max_bps_at_top must be in [0, {BPS_DENOM}]: {self.max_bps_at_top}")
        if self.base_bps < 0:
            raise ValueError(f"base_bps must be non-negative: {self.base_bps}")
        top_tier_bps = self.base_bps + self.cap_weights_bps[-1]
        if top_tier_bps > self.max_bps_at_top:
            raise ValueError(
                f"base_bps + top cap weight ({top_tier_bps}) must not exceed "
                f"max_bps_at_top ({self.max_bps_at_top})"
            )

    @property
    def size(self) -> int:
        return len(self.thresholds)


def reference_tier_table() -> TierTable:
    """The 8-tier Fibonacci schedule, thresholds scaled to lamports."""
    return TierTable(
        thresholds=tuple(t * LAMPORTS_PER_SOL for t in FIB_MCAP_THRESHOLDS_SOL),
        velocity_weights=FIB_VELOCITY_SOL,
        cap_weights_bps=FIB_TIERS,
    )


DEFAULT_TIER_TABLE = reference_tier_table()


def tier(valuation: int, table: TierTable = DEFAULT_TIER_TABLE) -> int:
    """Greatest i with valuation >= thresholds[i]; 0 below every threshold."""
    require_u64(valuation, name="valuation")
    return max(bisect_right(table.thresholds, valuation) - 1, 0)


def velocity_limit(valuation: int, table: TierTable = DEFAULT_TIER_TABLE) -> int:
    """Per-block flow limit in base units."""
    weight = table.velocity_weights[tier(valuation, table)]
    return checked_mul(weight, table.unit_scale, name="velocity_limit")


def size_cap(
    valuation: int,
    total_supply: int,
    top_threshold_override: int,
    table: TierTable = DEFAULT_TIER_TABLE,
) -> int:
    """Largest single transfer, as a bps share of `total_supply` (floored)."""
    require_u64(total_supply, name="total_supply")
    require_u64(top_threshold_override, name="top_threshold_override")
    if require_u64(valuation, name="valuation") >= top_threshold_override:
        bps = table.max_bps_at_top
    else:
        bps = table.base_bps + table.cap_weights_bps[tier(valuation, table)]
    return checked_mul_div(total_supply, bps, BPS_DENOM, name="size_cap")
