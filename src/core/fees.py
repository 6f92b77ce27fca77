"""
Fee splitting kernel (deterministic, integer-only).

The transfer tax is `gross * total_tax_bps / 10000` (floored). It is then
allocated across named components with a **running remainder**: component i
receives `floor(tax * cum_i / total) - floor(tax * cum_{i-1} / total)`, where
`cum_i` is the cumulative weight through i. The sum telescopes to exactly
`tax`, so no unit is ever dropped to independent truncation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..state.canonical import checked_mul_div, require_u64


BPS_DENOM = 10_000
GLOBAL_TAX_BPS = 250

DEFAULT_COMPONENTS: Tuple[Tuple[str, int], ...] = (
    ("buyback", 100),
    ("treasury", 100),
    ("rewards", 50),
)


@dataclass(frozen=True)
class FeeSplitParams:
    total_tax_bps: int = GLOBAL_TAX_BPS
    components: Tuple[Tuple[str, int], ...] = DEFAULT_COMPONENTS

    def __post_init__(self) -> None:
        v = self.total_tax_bps
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError("total_tax_bps must be an int")
        if not (0 <= v <= BPS_DENOM):
            raise ValueError(f"total_tax_bps must be in [0, {BPS_DENOM}]: {v}")
        comps = tuple((name, bps) for name, bps in self.components)
        object.__setattr__(self, "components", comps)
        if not comps:
            raise ValueError("at least one fee component is required")
        seen = set()
        for name, bps in comps:
            if not isinstance(name, str) or not name:
                raise TypeError("component names must be non-empty str")
            if name in seen:
                raise ValueError(f"duplicate component name: {name}")
            seen.add(name)
            if not isinstance(bps, int) or isinstance(bps, bool):
                raise TypeError(f"{name} bps must be an int")
            if bps < 0:
                raise ValueError(f"{name} bps must be non-negative: {bps}")
        total = sum(bps for _, bps in comps)
        if total != self.total_tax_bps:
            raise ValueError(f"component bps must sum to {self.total_tax_bps}, got {total}")


@dataclass(frozen=True)
class FeeBreakdown:
    gross: int
    total_tax: int
    net: int
    components: Tuple[Tuple[str, int], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.net + self.total_tax != self.gross:
            raise AssertionError("fee split does not conserve gross")
        if sum(amount for _, amount in self.components) != self.total_tax:
            raise AssertionError("fee components do not sum to total tax")

    def component(self, name: str) -> int:
        for n, amount in self.components:
            if n == name:
                return amount
        raise KeyError(name)

    def to_dict(self) -> Dict[str, object]:
        return {
            "gross": self.gross,
            "total_tax": self.total_tax,
            "net_amount": self.net,
            "components": {name: amount for name, amount in self.components},
        }


def split(gross: int, params: FeeSplitParams = FeeSplitParams()) -> FeeBreakdown:
    """Split `gross` into tax components and net; conserves every unit."""
    require_u64(gross, name="gross")
    total_tax = checked_mul_div(gross, params.total_tax_bps, BPS_DENOM, name="total_tax")

    components = []
    if params.total_tax_bps == 0:
        components = [(name, 0) for name, _ in params.components]
    else:
        cum_bps = 0
        allocated = 0
        for name, bps in params.components:
            cum_bps += bps
            upto = checked_mul_div(total_tax, cum_bps, params.total_tax_bps, name=name)
            components.append((name, upto - allocated))
            allocated = upto

    return FeeBreakdown(
        gross=gross,
        total_tax=total_tax,
        net=gross - total_tax,
        components=tuple(components),
    )
