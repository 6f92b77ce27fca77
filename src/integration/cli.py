"""
Command-line entry point.

Every subcommand prints one canonical JSON object on stdout and exits 0, or
logs the error and exits 1.

    mothership derive --tag meme --seed Dogecoin --seed DOGESPMP --nonce 0
    mothership mine --name Dogecoin --symbol DOGE --suffix S
    mothership velocity 5000000000000000
    mothership cap 5000000000000000 --supply 1000000000 --top 300000000000000000
    mothership split 1000000000
    mothership register --name Dogecoin --symbol DOGE --seed-hex 00...
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import yaml

from ..agents.keys import counter_random_source
from ..core import fees, rate_tiers
from ..core.derivation import derive
from ..core.errors import MothershipError
from ..core.vanity import MEME_TAG, VanityFound, mine, suffix_predicate
from ..state.canonical import canonical_json_bytes
from ..state.registry import normalize_label
from .client import MothershipClient
from .config import MothershipConfig, load_config


log = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="mothership", description="Vanity ids, tier limits and fee splits.")
    ap.add_argument("--config", type=Path, default=None, help="YAML config file")
    ap.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("derive", help="derive one address for (tag, seeds, nonce)")
    p.add_argument("--tag", default=MEME_TAG.decode("ascii"))
    p.add_argument("--seed", action="append", default=[], help="UTF-8 seed (repeatable)")
    p.add_argument("--nonce", type=int, default=0)

    p = sub.add_parser("mine", help="run the bounded vanity search")
    p.add_argument("--name", required=True)
    p.add_argument("--symbol", required=True)
    p.add_argument("--suffix", default=None, help="override configured suffix")

    p = sub.add_parser("velocity", help="per-block velocity limit for a valuation")
    p.add_argument("valuation", type=int)

    p = sub.add_parser("cap", help="size cap for a valuation")
    p.add_argument("valuation", type=int)
    p.add_argument("--supply", type=int, required=True)
    p.add_argument("--top", type=int, required=True, help="top threshold override (base units)")

    p = sub.add_parser("split", help="split a gross amount into tax components")
    p.add_argument("gross", type=int)

    p = sub.add_parser("register", help="register once in a fresh client and print the handshake")
    p.add_argument("--name", required=True)
    p.add_argument("--symbol", required=True)
    p.add_argument("--seed-hex", default=None, help="fix key randomness (reproducible output)")

    p = sub.add_parser("vault-pda", help="vault address for a user")
    p.add_argument("user")

    p = sub.add_parser("meme-pda", help="meme address for (name, spmp_mint, nonce)")
    p.add_argument("--name", required=True)
    p.add_argument("--mint", required=True)
    p.add_argument("--nonce", type=int, default=0)
    return ap


def _run(args: argparse.Namespace, cfg: MothershipConfig) -> Dict[str, Any]:
    cmd = args.command
    if cmd == "derive":
        seeds = [s.encode("utf-8") for s in args.seed]
        address, bump = derive(args.tag.encode("utf-8"), seeds, args.nonce, cfg.program_id)
        return {"address": str(address), "bump": bump}
    if cmd == "mine":
        label = normalize_label(args.symbol)
        suffix = cfg.vanity_suffix if args.suffix is None else args.suffix
        outcome = mine(
            args.name,
            label.encode("utf-8"),
            suffix_predicate(suffix, cfg.case_sensitive_suffix),
            cfg.program_id,
        )
        if isinstance(outcome, VanityFound):
            return {"found": True, "address": str(outcome.address), "nonce": outcome.nonce, "bump": outcome.bump}
        return {"found": False, "attempts": outcome.attempts}
    if cmd == "velocity":
        return {"velocity_limit": rate_tiers.velocity_limit(args.valuation, cfg.tier_table)}
    if cmd == "cap":
        return {"size_cap": rate_tiers.size_cap(args.valuation, args.supply, args.top, cfg.tier_table)}
    if cmd == "split":
        return fees.split(args.gross, cfg.fee_split).to_dict()

    source = counter_random_source(bytes.fromhex(args.seed_hex)) if getattr(args, "seed_hex", None) else None
    client = MothershipClient(cfg, random_source=source)
    if cmd == "register":
        return client.register_meme(args.name, args.symbol).to_dict()
    if cmd == "vault-pda":
        return {"vault_pda": str(client.vault_pda(args.user))}
    if cmd == "meme-pda":
        return {"meme_pda": str(client.meme_pda(args.name, args.mint, args.nonce))}
    raise ValueError(f"unknown command: {cmd}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        cfg = load_config(args.config)
        result = _run(args, cfg)
    except (MothershipError, ValueError, TypeError, OSError, yaml.YAMLError) as exc:
        log.error("%s failed: %s", args.command, exc)
        return 1
    sys.stdout.write(canonical_json_bytes(result).decode("utf-8") + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
