"""
Asset registry and rotator key manager.

Entries are keyed by cosmetic (vanity) address and move through two states:

    Registered (active=True)  --retire()-->  Retired (active=False)

Invariants:
- at most one active entry per cosmetic address and per label
- `created_at` never changes; retirement replaces the record with active=False
- a retired label may be registered again (as a new entry); the retired
  record is kept in the address history, never overwritten

Concurrency: one lock guards the tables. Vanity mining and key generation run
before the lock is taken; the critical section is only read/compare/insert.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Union

from ..agents.keys import KeyGenerator, Keypair
from ..core.derivation import DEFAULT_PROGRAM_ID, MAX_SEED_LEN
from ..core.errors import DuplicateLabelError, EntryNotFoundError, MiningFailedError
from ..core.rotation import MIN_DWELL_SECONDS, require_rotation
from ..core.vanity import VanityExhausted, mine, suffix_predicate
from .canonical import Identifier


log = logging.getLogger(__name__)

SPMP_SUFFIX = "SPMP"


def normalize_label(symbol: str, suffix: str = SPMP_SUFFIX) -> str:
    """Uppercase symbol with the fixed suffix tag appended (e.g. DOGE -> DOGESPMP)."""
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValueError("symbol must be a non-empty str")
    label = symbol.strip().upper() + suffix
    if len(label.encode("utf-8")) > MAX_SEED_LEN:
        raise ValueError(f"symbol too long: label {label!r} exceeds {MAX_SEED_LEN} bytes")
    return label


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError("name must be a non-empty str")
    if len(name.encode("utf-8")) > MAX_SEED_LEN:
        raise ValueError(f"name too long: {name!r} exceeds {MAX_SEED_LEN} bytes")


@dataclass(frozen=True)
class AssetEntry:
    cosmetic_address: Identifier
    name: str
    label: str
    owner: Identifier
    created_at: int
    nonce: int
    bump: int
    active: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.created_at, int) or isinstance(self.created_at, bool):
            raise TypeError("created_at must be an int")
        if self.created_at < 0:
            raise ValueError(f"created_at must be non-negative: {self.created_at}")
        if not (0 <= self.nonce <= 255 and 0 <= self.bump <= 255):
            raise ValueError("nonce and bump must be bytes")

    def to_dict(self) -> Dict[str, object]:
        return {
            "cosmetic_address": str(self.cosmetic_address),
            "name": self.name,
            "label": self.label,
            "owner": str(self.owner),
            "created_at": self.created_at,
            "nonce": self.nonce,
            "bump": self.bump,
            "active": self.active,
        }


class AssetRegistry:
    """
    Thread-safe registry of vanity-addressed assets and their rotator keys.

    With `single_active_rotator=True` every rotation revokes the previous key,
    so only the newest key passes `is_rotator_valid`. Otherwise rotation is
    advisory and every issued key stays valid.
    """

    def __init__(
        self,
        *,
        program_id: Identifier = DEFAULT_PROGRAM_ID,
        vanity_suffix: str = SPMP_SUFFIX,
        case_sensitive_suffix: bool = True,
        label_suffix: str = SPMP_SUFFIX,
        min_dwell_seconds: int = MIN_DWELL_SECONDS,
        single_active_rotator: bool = False,
        key_generator: Optional[KeyGenerator] = None,
    ) -> None:
        if min_dwell_seconds < 0:
            raise ValueError(f"min_dwell_seconds must be non-negative: {min_dwell_seconds}")
        self._program_id = program_id
        self._predicate = suffix_predicate(vanity_suffix, case_sensitive_suffix)
        self._label_suffix = label_suffix
        self._min_dwell = min_dwell_seconds
        self._single_active = single_active_rotator
        self._keys = key_generator or KeyGenerator()

        self._lock = threading.Lock()
        # Latest record per address; superseded retired records move to _history.
        self._entries: Dict[bytes, AssetEntry] = {}
        self._history: Dict[bytes, List[AssetEntry]] = {}
        self._active_labels: Dict[str, bytes] = {}
        self._rotators: Dict[bytes, List[Keypair]] = {}

    @property
    def min_dwell_seconds(self) -> int:
        return self._min_dwell

    def register(self, name: str, symbol: str, owner: Identifier, now: int) -> AssetEntry:
        """
        Mine a vanity address for (name, label) and record a new active entry.

        Raises:
            DuplicateLabelError: an active entry holds the label or address.
            MiningFailedError: no nonce in [0, 255] produced a match.
        """
        _check_name(name)
        label = normalize_label(symbol, self._label_suffix)
        with self._lock:
            if label in self._active_labels:
                raise DuplicateLabelError(f"label already registered: {label}")

        outcome = mine(name, label.encode("utf-8"), self._predicate, self._program_id)
        if isinstance(outcome, VanityExhausted):
            log.warning("vanity search exhausted for %s/%s after %d nonces", name, label, outcome.attempts)
            raise MiningFailedError(label, outcome.attempts)
        rotator = self._keys.keypair()

        entry = AssetEntry(
            cosmetic_address=outcome.address,
            name=name,
            label=label,
            owner=owner,
            created_at=now,
            nonce=outcome.nonce,
            bump=outcome.bump,
        )
        key = entry.cosmetic_address.raw
        with self._lock:
            if label in self._active_labels:
                raise DuplicateLabelError(f"label already registered: {label}")
            existing = self._entries.get(key)
            if existing is not None:
                if existing.active:
                    raise DuplicateLabelError(f"address already registered: {entry.cosmetic_address}")
                self._history.setdefault(key, []).append(existing)
            self._entries[key] = entry
            self._active_labels[label] = key
            self._rotators[key] = [rotator]

        log.info("registered %s at %s (nonce=%d bump=%d)", label, entry.cosmetic_address, entry.nonce, entry.bump)
        return entry

    def rotate(self, cosmetic_address: Union[Identifier, str], now: int) -> Keypair:
        """
        Issue a fresh rotator key for an eligible entry.

        Raises EntryNotFoundError, EntryInactiveError or RotationTooSoonError.
        """
        address = _as_identifier(cosmetic_address)
        candidate = self._keys.keypair()
        with self._lock:
            entry = self._entries.get(address.raw)
            if entry is None:
                raise EntryNotFoundError(f"no entry for {address}")
            require_rotation(entry.created_at, entry.active, now, self._min_dwell)
            issued = self._rotators[address.raw]
            if self._single_active:
                issued.clear()
            issued.append(candidate)
        log.info("rotated key for %s -> %s", entry.label, candidate.public)
        return candidate

    def retire(self, cosmetic_address: Union[Identifier, str]) -> AssetEntry:
        """Deactivate an entry; retiring a retired entry is a no-op."""
        address = _as_identifier(cosmetic_address)
        with self._lock:
            entry = self._entries.get(address.raw)
            if entry is None:
                raise EntryNotFoundError(f"no entry for {address}")
            if not entry.active:
                return entry
            retired = replace(entry, active=False)
            self._entries[address.raw] = retired
            self._active_labels.pop(entry.label, None)
        log.info("retired %s at %s", entry.label, address)
        return retired

    def get(self, cosmetic_address: Union[Identifier, str]) -> AssetEntry:
        address = _as_identifier(cosmetic_address)
        with self._lock:
            entry = self._entries.get(address.raw)
        if entry is None:
            raise EntryNotFoundError(f"no entry for {address}")
        return entry

    def entries(self, active_only: bool = False) -> List[AssetEntry]:
        """All records, retired ones included, in registration order per address."""
        with self._lock:
            out = []
            for key, latest in self._entries.items():
                out.extend(self._history.get(key, ()))
                out.append(latest)
        if active_only:
            out = [e for e in out if e.active]
        return out

    def history(self, cosmetic_address: Union[Identifier, str]) -> List[AssetEntry]:
        """Every record ever held at `cosmetic_address`, oldest first."""
        address = _as_identifier(cosmetic_address)
        with self._lock:
            latest = self._entries.get(address.raw)
            if latest is None:
                raise EntryNotFoundError(f"no entry for {address}")
            return [*self._history.get(address.raw, ()), latest]

    def current_rotator(self, cosmetic_address: Union[Identifier, str]) -> Keypair:
        address = _as_identifier(cosmetic_address)
        with self._lock:
            issued = self._rotators.get(address.raw)
            if not issued:
                raise EntryNotFoundError(f"no entry for {address}")
            return issued[-1]

    def is_rotator_valid(self, cosmetic_address: Union[Identifier, str], rotator: Identifier) -> bool:
        """True if `rotator` was issued for an active entry and is not revoked."""
        address = _as_identifier(cosmetic_address)
        with self._lock:
            entry = self._entries.get(address.raw)
            if entry is None or not entry.active:
                return False
            return any(kp.public == rotator for kp in self._rotators[address.raw])


def _as_identifier(value: Union[Identifier, str]) -> Identifier:
    if isinstance(value, Identifier):
        return value
    return Identifier.from_base58(value)
