"""
Bounded vanity search over program-derived addresses.

For nonce = 0, 1, ..., 255 the miner derives
`[MEME_TAG, label, owner_seed, nonce]` and stops at the first address whose
base58 text satisfies the predicate. The search is deterministic (same inputs
give the same winning nonce) and never exceeds 256 derivations.

Expected cost: a 32-byte address is close to uniform in base58, so the last k
characters match a fixed suffix with probability about 58^-k per nonce. For a
one-character suffix a full pass succeeds ~98.8% of the time (expected first
hit at nonce ~57); for the four-character "SPMP" tag the per-nonce
probability is ~8.8e-8 and a pass succeeds ~2.3e-5 of the time. Callers that
need a cosmetic address with long suffixes vary label/seed and call again.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

from ..state.canonical import Identifier
from .derivation import DEFAULT_PROGRAM_ID, MAX_SEED_LEN, derive
from .errors import DerivationExhaustedError, MiningFailedError


MEME_TAG = b"meme"
NONCE_DOMAIN = 256

SuffixPredicate = Callable[[str], bool]


@dataclass(frozen=True)
class VanityFound:
    address: Identifier
    bump: int
    nonce: int

    @property
    def attempts(self) -> int:
        return self.nonce + 1


@dataclass(frozen=True)
class VanityExhausted:
    attempts: int
    cancelled: bool = False


MiningOutcome = Union[VanityFound, VanityExhausted]


def suffix_predicate(suffix: str, case_sensitive: bool = True) -> SuffixPredicate:
    """Build a predicate matching base58 text that ends with `suffix`."""
    if not isinstance(suffix, str):
        raise TypeError("suffix must be a str")
    if case_sensitive:
        return lambda text: text.endswith(suffix)
    folded = suffix.lower()
    return lambda text: text.lower().endswith(folded)


def mine(
    label: str,
    owner_seed: bytes,
    predicate: SuffixPredicate,
    program_id: Identifier = DEFAULT_PROGRAM_ID,
    should_stop: Optional[Callable[[], bool]] = None,
) -> MiningOutcome:
    """
    Return the lowest-nonce match, or `VanityExhausted` if none exists.

    `should_stop` is polled before each derivation; returning True ends the
    search early with `VanityExhausted(cancelled=True)`. A nonce whose own
    bump search is exhausted counts as a miss.
    """
    if not isinstance(label, str) or not label:
        raise ValueError("label must be a non-empty str")
    label_bytes = label.encode("utf-8")
    if len(label_bytes) > MAX_SEED_LEN:
        raise ValueError(f"label exceeds {MAX_SEED_LEN} bytes: {label!r}")
    if len(owner_seed) > MAX_SEED_LEN:
        raise ValueError(f"owner_seed exceeds {MAX_SEED_LEN} bytes: {len(owner_seed)}")
    for nonce in range(NONCE_DOMAIN):
        if should_stop is not None and should_stop():
            return VanityExhausted(attempts=nonce, cancelled=True)
        try:
            address, bump = derive(MEME_TAG, [label_bytes, owner_seed], nonce, program_id)
        except DerivationExhaustedError:
            continue
        if predicate(str(address)):
            return VanityFound(address=address, bump=bump, nonce=nonce)
    return VanityExhausted(attempts=NONCE_DOMAIN)


def mine_or_raise(
    label: str,
    owner_seed: bytes,
    predicate: SuffixPredicate,
    program_id: Identifier = DEFAULT_PROGRAM_ID,
) -> VanityFound:
    """Like ``mine()`` but raises MiningFailedError on exhaustion."""
    outcome = mine(label, owner_seed, predicate, program_id)
    if isinstance(outcome, VanityExhausted):
        raise MiningFailedError(label, outcome.attempts)
    return outcome
