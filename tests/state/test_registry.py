"""Tests for the asset registry and rotator key manager."""

from __future__ import annotations

import threading

import pytest

from src.agents.keys import KeyGenerator, counter_random_source
from src.core.derivation import derive
from src.core.errors import (
    DuplicateLabelError,
    EntryInactiveError,
    EntryNotFoundError,
    InvalidIdentifierEncodingError,
    MiningFailedError,
    RotationTooSoonError,
)
from src.state.canonical import Identifier
from src.state.registry import AssetRegistry, normalize_label


OWNER = Identifier(b"\x07" * 32)
T0 = 1_700_000_000


def _registry(**kwargs) -> AssetRegistry:
    # Empty suffix: every derived address matches, so nonce 0 always wins.
    kwargs.setdefault("vanity_suffix", "")
    kwargs.setdefault("key_generator", KeyGenerator(counter_random_source(b"registry-tests")))
    return AssetRegistry(**kwargs)


# ---------------------------------------------------------------------------
# register
# ---------------------------------------------------------------------------

def test_normalize_label() -> None:
    assert normalize_label("doge") == "DOGESPMP"
    assert normalize_label(" Pepe ") == "PEPESPMP"
    with pytest.raises(ValueError):
        normalize_label("  ")


def test_register_records_active_entry() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    assert entry.label == "DOGESPMP"
    assert entry.owner == OWNER
    assert entry.created_at == T0
    assert entry.active
    assert entry.nonce == 0
    assert (entry.cosmetic_address, entry.bump) == derive(b"meme", [b"Dogecoin", b"DOGESPMP"], 0)
    assert reg.get(entry.cosmetic_address) == entry
    assert reg.get(str(entry.cosmetic_address)) == entry


def test_register_duplicate_label_rejected() -> None:
    reg = _registry()
    reg.register("Dogecoin", "DOGE", OWNER, T0)
    with pytest.raises(DuplicateLabelError):
        reg.register("Another Doge", "doge", OWNER, T0 + 1)


def test_register_mining_failure_leaves_no_entry() -> None:
    reg = _registry(vanity_suffix="0")  # '0' never appears in base58
    with pytest.raises(MiningFailedError):
        reg.register("Dogecoin", "DOGE", OWNER, T0)
    assert reg.entries() == []


def test_register_is_reproducible_with_fixed_randomness() -> None:
    a = _registry(vanity_suffix="S")
    b = _registry(vanity_suffix="S")
    first = a.register("DOGE", "DOGE", OWNER, T0)
    second = b.register("DOGE", "DOGE", OWNER, T0)
    assert first == second
    assert str(first.cosmetic_address) == "BPGpDNtNfu6USAbsYMTQa17q5zBp8Z9p8sv3tj9h9ziS"
    assert (first.nonce, first.bump) == (176, 255)
    assert a.current_rotator(first.cosmetic_address) == b.current_rotator(second.cosmetic_address)


def test_register_rejects_oversized_name_and_symbol() -> None:
    reg = _registry()
    with pytest.raises(ValueError, match="name too long"):
        reg.register("A" * 33, "DOGE", OWNER, T0)
    with pytest.raises(ValueError, match="symbol too long"):
        reg.register("Dogecoin", "D" * 29, OWNER, T0)
    assert reg.entries() == []


def test_concurrent_register_same_label_single_winner() -> None:
    reg = _registry()
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def worker(i: int) -> None:
        barrier.wait()
        try:
            reg.register(f"Doge{i}", "DOGE", OWNER, T0)
            outcome = "ok"
        except DuplicateLabelError:
            outcome = "dup"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("ok") == 1
    assert results.count("dup") == 7
    assert len(reg.entries(active_only=True)) == 1


# ---------------------------------------------------------------------------
# rotate
# ---------------------------------------------------------------------------

def test_rotate_respects_dwell_time() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    initial = reg.current_rotator(entry.cosmetic_address)

    with pytest.raises(RotationTooSoonError):
        reg.rotate(entry.cosmetic_address, T0 + 3599)

    fresh = reg.rotate(entry.cosmetic_address, T0 + 3600)
    assert fresh.public != initial.public
    assert reg.current_rotator(entry.cosmetic_address) == fresh
    # created_at is not moved by rotation.
    assert reg.get(entry.cosmetic_address).created_at == T0
    assert reg.rotate(entry.cosmetic_address, T0 + 3601).public != fresh.public


def test_rotate_unknown_address() -> None:
    reg = _registry()
    with pytest.raises(EntryNotFoundError):
        reg.rotate(Identifier(b"\x09" * 32), T0)


def test_rotate_malformed_address() -> None:
    reg = _registry()
    with pytest.raises(InvalidIdentifierEncodingError):
        reg.rotate("0OIl", T0)


def test_rotate_retired_entry() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    retired = reg.retire(entry.cosmetic_address)
    assert not retired.active
    with pytest.raises(EntryInactiveError):
        reg.rotate(entry.cosmetic_address, T0 + 7200)


def test_advisory_rotation_keeps_old_keys_valid() -> None:
    reg = _registry(single_active_rotator=False)
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    old = reg.current_rotator(entry.cosmetic_address).public
    new = reg.rotate(entry.cosmetic_address, T0 + 3600).public
    assert reg.is_rotator_valid(entry.cosmetic_address, old)
    assert reg.is_rotator_valid(entry.cosmetic_address, new)


def test_single_active_rotation_revokes_old_key() -> None:
    reg = _registry(single_active_rotator=True)
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    old = reg.current_rotator(entry.cosmetic_address).public
    new = reg.rotate(entry.cosmetic_address, T0 + 3600).public
    assert not reg.is_rotator_valid(entry.cosmetic_address, old)
    assert reg.is_rotator_valid(entry.cosmetic_address, new)


# ---------------------------------------------------------------------------
# retire
# ---------------------------------------------------------------------------

def test_retire_frees_label_and_invalidates_keys() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    key = reg.current_rotator(entry.cosmetic_address).public
    reg.retire(entry.cosmetic_address)
    assert not reg.is_rotator_valid(entry.cosmetic_address, key)
    assert reg.entries(active_only=True) == []

    again = reg.register("Dogecoin", "DOGE", OWNER, T0 + 10)
    assert again.active
    assert again.cosmetic_address == entry.cosmetic_address
    assert again.created_at == T0 + 10


def test_reregister_after_retire_keeps_retired_record() -> None:
    reg = _registry()
    old = reg.register("Dogecoin", "DOGE", OWNER, 100)
    retired = reg.retire(old.cosmetic_address)
    new = reg.register("Dogecoin", "DOGE", OWNER, 200)
    assert new.cosmetic_address == old.cosmetic_address

    assert reg.get(old.cosmetic_address) == new
    assert reg.history(old.cosmetic_address) == [retired, new]
    assert [(e.created_at, e.active) for e in reg.entries()] == [(100, False), (200, True)]
    assert reg.entries(active_only=True) == [new]


def test_retire_is_idempotent_and_unknown_raises() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    first = reg.retire(entry.cosmetic_address)
    assert reg.retire(entry.cosmetic_address) == first
    with pytest.raises(EntryNotFoundError):
        reg.retire(Identifier(b"\x09" * 32))


def test_entry_to_dict() -> None:
    reg = _registry()
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    d = entry.to_dict()
    assert d["cosmetic_address"] == str(entry.cosmetic_address)
    assert d["label"] == "DOGESPMP"
    assert d["owner"] == str(OWNER)
    assert d["active"] is True


# ---------------------------------------------------------------------------
# concurrent rotate / retire
# ---------------------------------------------------------------------------

def _race(workers) -> list:
    barrier = threading.Barrier(len(workers))
    results = []
    lock = threading.Lock()

    def run(fn) -> None:
        barrier.wait()
        outcome = fn()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=run, args=(fn,)) for fn in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return results


def test_concurrent_rotate_and_retire_are_serialized() -> None:
    for _ in range(5):
        reg = _registry()
        entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
        address = entry.cosmetic_address

        def rotate():
            try:
                return ("ok", reg.rotate(address, T0 + 3600).public)
            except EntryInactiveError:
                return ("inactive", None)

        def retire():
            return ("retired", reg.retire(address))

        results = _race([rotate] * 7 + [retire])
        kinds = [kind for kind, _ in results]
        assert kinds.count("retired") == 1
        assert set(kinds) <= {"ok", "inactive", "retired"}

        final = reg.get(address)
        assert not final.active
        assert final.created_at == T0
        assert reg.history(address) == [final]
        # Keys issued before retirement are all dead afterwards.
        for kind, key in results:
            if kind == "ok":
                assert not reg.is_rotator_valid(address, key)


def test_concurrent_single_active_rotations_leave_one_valid_key() -> None:
    reg = _registry(single_active_rotator=True)
    entry = reg.register("Dogecoin", "DOGE", OWNER, T0)
    address = entry.cosmetic_address

    keys = _race([lambda: reg.rotate(address, T0 + 3600).public] * 8)
    assert len(set(keys)) == 8
    valid = [k for k in keys if reg.is_rotator_valid(address, k)]
    assert valid == [reg.current_rotator(address).public]
