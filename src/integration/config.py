"""
Mothership configuration.

Sources, lowest to highest precedence:
1. built-in reference values (`MothershipConfig()`)
2. a YAML file (`load_config(path)`), validated fail-closed
3. environment overrides (`MOTHERSHIP_*`)

Example YAML:

    program_id: JBjKCmvSK3dMPfKk1WGD8nZfw8yAZHtuZ3GLo7NpCHX7
    vanity_suffix: SPMP
    min_dwell_seconds: 3600
    single_active_rotator: false
    tiers:
      thresholds_sol: [1000000, 3000000, ...]
      velocity_sol: [1, 3, ...]
      cap_weights_bps: [1, 2, ...]
      base_bps: 1
      max_bps_at_top: 100
    fees:
      total_tax_bps: 250
      components: {buyback: 100, treasury: 100, rewards: 50}
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from ..core.derivation import DEFAULT_PROGRAM_ID
from ..core.fees import FeeSplitParams
from ..core.rate_tiers import DEFAULT_TIER_TABLE, LAMPORTS_PER_SOL, TierTable
from ..core.rotation import MIN_DWELL_SECONDS
from ..state.canonical import Identifier
from ..state.registry import SPMP_SUFFIX


_TOP_KEYS = {
    "program_id",
    "vanity_suffix",
    "case_sensitive_suffix",
    "min_dwell_seconds",
    "single_active_rotator",
    "tiers",
    "fees",
}
_TIER_KEYS = {"thresholds_sol", "velocity_sol", "cap_weights_bps", "base_bps", "max_bps_at_top", "unit_scale"}
_FEE_KEYS = {"total_tax_bps", "components"}


@dataclass(frozen=True)
class MothershipConfig:
    program_id: Identifier = DEFAULT_PROGRAM_ID
    vanity_suffix: str = SPMP_SUFFIX
    case_sensitive_suffix: bool = True
    min_dwell_seconds: int = MIN_DWELL_SECONDS
    single_active_rotator: bool = False
    tier_table: TierTable = DEFAULT_TIER_TABLE
    fee_split: FeeSplitParams = field(default_factory=FeeSplitParams)

    def __post_init__(self) -> None:
        if not isinstance(self.program_id, Identifier):
            raise TypeError("program_id must be an Identifier")
        if not isinstance(self.vanity_suffix, str):
            raise TypeError("vanity_suffix must be a str")
        for name in ("case_sensitive_suffix", "single_active_rotator"):
            if not isinstance(getattr(self, name), bool):
                raise TypeError(f"{name} must be a bool")
        if not isinstance(self.min_dwell_seconds, int) or isinstance(self.min_dwell_seconds, bool):
            raise TypeError("min_dwell_seconds must be an int")
        if self.min_dwell_seconds < 0:
            raise ValueError(f"min_dwell_seconds must be non-negative: {self.min_dwell_seconds}")


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{name} must be a mapping")
    return value


def _reject_unknown(obj: Mapping[str, Any], allowed: set, *, name: str) -> None:
    unknown = sorted(set(obj) - allowed)
    if unknown:
        raise ValueError(f"unknown {name} keys: {', '.join(unknown)}")


def _tier_table_from_mapping(obj: Mapping[str, Any]) -> TierTable:
    _reject_unknown(obj, _TIER_KEYS, name="tiers")
    unit_scale = obj.get("unit_scale", LAMPORTS_PER_SOL)
    base = DEFAULT_TIER_TABLE
    if "thresholds_sol" in obj:
        thresholds = tuple(int(t) * unit_scale for t in obj["thresholds_sol"])
    else:
        thresholds = base.thresholds
    return TierTable(
        thresholds=thresholds,
        velocity_weights=tuple(obj.get("velocity_sol", base.velocity_weights)),
        cap_weights_bps=tuple(obj.get("cap_weights_bps", base.cap_weights_bps)),
        base_bps=obj.get("base_bps", base.base_bps),
        max_bps_at_top=obj.get("max_bps_at_top", base.max_bps_at_top),
        unit_scale=unit_scale,
    )


def _fee_split_from_mapping(obj: Mapping[str, Any]) -> FeeSplitParams:
    _reject_unknown(obj, _FEE_KEYS, name="fees")
    defaults = FeeSplitParams()
    components = obj.get("components")
    if components is None:
        comps = defaults.components
    else:
        # YAML mappings keep document order, which fixes the allocation order.
        comps = tuple(_require_mapping(components, name="fees.components").items())
    return FeeSplitParams(
        total_tax_bps=obj.get("total_tax_bps", defaults.total_tax_bps),
        components=comps,
    )


def config_from_mapping(obj: Mapping[str, Any]) -> MothershipConfig:
    _require_mapping(obj, name="config")
    _reject_unknown(obj, _TOP_KEYS, name="config")
    cfg = MothershipConfig()
    updates: dict = {}
    if "program_id" in obj:
        updates["program_id"] = Identifier.from_base58(obj["program_id"])
    for name in ("vanity_suffix", "case_sensitive_suffix", "min_dwell_seconds", "single_active_rotator"):
        if name in obj:
            updates[name] = obj[name]
    if "tiers" in obj:
        updates["tier_table"] = _tier_table_from_mapping(_require_mapping(obj["tiers"], name="tiers"))
    if "fees" in obj:
        updates["fee_split"] = _fee_split_from_mapping(_require_mapping(obj["fees"], name="fees"))
    return replace(cfg, **updates)


def _env_int(name: str, default: int, *, lo: int, hi: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return int(default)
    try:
        v = int(raw.strip())
    except ValueError:
        return int(default)
    if v < lo:
        raise ValueError(f"{name} must be >= {lo}: {v}")
    if v > hi:
        return int(hi)
    return int(v)


def _env_str(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def apply_env_overrides(cfg: MothershipConfig) -> MothershipConfig:
    program_id = _env_str("MOTHERSHIP_PROGRAM_ID", "")
    return replace(
        cfg,
        program_id=Identifier.from_base58(program_id) if program_id else cfg.program_id,
        # An empty suffix cannot be set from the environment; use a config file.
        vanity_suffix=_env_str("MOTHERSHIP_VANITY_SUFFIX", cfg.vanity_suffix),
        min_dwell_seconds=_env_int(
            "MOTHERSHIP_MIN_DWELL_SECONDS", cfg.min_dwell_seconds, lo=0, hi=365 * 24 * 3600
        ),
        single_active_rotator=_env_bool("MOTHERSHIP_SINGLE_ACTIVE_ROTATOR", cfg.single_active_rotator),
    )


def load_config(path: Optional[Path] = None, *, use_env: bool = True) -> MothershipConfig:
    """Load YAML config (if given) and apply environment overrides."""
    if path is None:
        cfg = MothershipConfig()
    else:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        cfg = config_from_mapping(raw or {})
    return apply_env_overrides(cfg) if use_env else cfg
