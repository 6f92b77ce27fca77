from __future__ import annotations

import pytest
from nacl.signing import SigningKey

import src.core.derivation as derivation
from src.core.derivation import (
    DEFAULT_PROGRAM_ID,
    create_program_address,
    derive,
    find_program_address,
    is_on_curve,
)
from src.core.errors import DerivationExhaustedError
from src.state.canonical import Identifier


SEEDS = [b"Dogecoin", b"DOGESPMP"]


# ---------------------------------------------------------------------------
# curve membership
# ---------------------------------------------------------------------------

def test_real_ed25519_public_keys_are_on_curve() -> None:
    for i in range(1, 6):
        pk = SigningKey(bytes([i]) * 32).verify_key.encode()
        assert is_on_curve(pk)


def test_basepoint_encoding_is_on_curve() -> None:
    # y = 4/5 mod p, the standard ed25519 basepoint encoding.
    basepoint = bytes.fromhex("58" + "66" * 31)
    assert is_on_curve(basepoint)


def test_is_on_curve_rejects_wrong_length() -> None:
    with pytest.raises(ValueError):
        is_on_curve(b"\x00" * 31)


# ---------------------------------------------------------------------------
# derive / find_program_address
# ---------------------------------------------------------------------------

def test_derive_is_deterministic() -> None:
    a = derive(b"meme", SEEDS, 7)
    b = derive(b"meme", SEEDS, 7)
    assert a == b
    assert isinstance(a[0], Identifier)


def test_derive_matches_find_program_address_with_nonce_seed() -> None:
    for nonce in (0, 1, 200, 255):
        assert derive(b"meme", SEEDS, nonce) == find_program_address([b"meme", *SEEDS, bytes([nonce])])


def test_derived_address_is_off_curve() -> None:
    for nonce in range(16):
        address, _ = derive(b"meme", SEEDS, nonce)
        assert not is_on_curve(address.raw)


def test_bump_is_highest_off_curve_bump() -> None:
    seeds = [b"meme", *SEEDS, b"\x03"]
    address, bump = find_program_address(seeds)
    assert 1 <= bump <= 255
    assert create_program_address([*seeds, bytes([bump])]) == address
    for higher in range(bump + 1, 256):
        with pytest.raises(ValueError):
            create_program_address([*seeds, bytes([higher])])


@pytest.mark.parametrize(
    "seeds, address, bump",
    [
        (
            [b"meme", b"Dogecoin", b"DOGESPMP", b"\x00"],
            "GJocXiBskBtheiK1Cp3Gxs7fNDMg7LsGjMTQFACGozjQ",
            255,
        ),
        (
            [b"zk_vault", b"\x05" * 32],
            "8u4wfFxEMpyQQQhxwFhu7bNgDTBsW7B8AgemwHTBU3Bk",
            252,
        ),
        (
            [b"contract", b"\x05" * 32],
            "ACrwms3mBkZV7Rci6DkXjkN14TKFL7Xu6wfnDZp48LZ1",
            251,
        ),
    ],
)
def test_known_answer_addresses(seeds: list, address: str, bump: int) -> None:
    found, found_bump = find_program_address(seeds)
    assert (str(found), found_bump) == (address, bump)


def test_derive_known_answer_for_nonce_zero() -> None:
    address, bump = derive(b"meme", SEEDS, 0)
    assert (str(address), bump) == ("GJocXiBskBtheiK1Cp3Gxs7fNDMg7LsGjMTQFACGozjQ", 255)


def test_nonce_and_program_id_change_the_address() -> None:
    other_program = Identifier(b"\x01" * 32)
    a, _ = derive(b"meme", SEEDS, 0)
    b, _ = derive(b"meme", SEEDS, 1)
    c, _ = derive(b"meme", SEEDS, 0, other_program)
    assert len({a, b, c}) == 3


def test_default_program_id_round_trips() -> None:
    assert str(DEFAULT_PROGRAM_ID) == "JBjKCmvSK3dMPfKk1WGD8nZfw8yAZHtuZ3GLo7NpCHX7"


# ---------------------------------------------------------------------------
# domain errors
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("nonce", [-1, 256, True])
def test_derive_rejects_non_byte_nonce(nonce: int) -> None:
    with pytest.raises(ValueError):
        derive(b"meme", SEEDS, nonce)


def test_seed_longer_than_32_bytes_rejected() -> None:
    with pytest.raises(ValueError):
        derive(b"meme", [b"x" * 33], 0)


def test_too_many_seeds_rejected() -> None:
    with pytest.raises(ValueError):
        find_program_address([b"s"] * 16)


def test_exhausted_bump_search_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(derivation, "is_on_curve", lambda point: True)
    with pytest.raises(DerivationExhaustedError):
        derive(b"meme", SEEDS, 0)
