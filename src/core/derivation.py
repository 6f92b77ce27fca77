"""
Program-derived addresses (deterministic, key-less identifiers).

An address is `sha256(seed_1 || ... || seed_n || program_id || PDA_MARKER)`,
accepted only when the digest is *not* a valid ed25519 point encoding, so no
private key can ever sign for it. A bump byte is appended as the final seed
and searched downward from 255 until an off-curve digest is found.
"""

from __future__ import annotations

import hashlib
from typing import Sequence, Tuple

from ..state.canonical import Identifier
from .errors import DerivationExhaustedError


PDA_MARKER = b"ProgramDerivedAddress"
MAX_SEEDS = 16
MAX_SEED_LEN = 32

DEFAULT_PROGRAM_ID = Identifier.from_base58("JBjKCmvSK3dMPfKk1WGD8nZfw8yAZHtuZ3GLo7NpCHX7")

# Edwards25519 field and curve constant d = -121665/121666.
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def is_on_curve(point: bytes) -> bool:
    """
    Return True if `point` decompresses to an ed25519 curve point.

    Decompression recovers x from y via x^2 = (y^2 - 1) / (d*y^2 + 1); the
    encoding is on-curve iff that ratio is a square in GF(p). The sign bit is
    ignored and y is taken mod p, matching the settling program's check.
    """
    if len(point) != 32:
        raise ValueError("point must be 32 bytes")
    y = (int.from_bytes(point, "little") & ((1 << 255) - 1)) % _P
    yy = (y * y) % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    ratio = (u * pow(v, _P - 2, _P)) % _P
    if ratio == 0:
        return True
    # Euler's criterion.
    return pow(ratio, (_P - 1) // 2, _P) == 1


def _check_seeds(seeds: Sequence[bytes]) -> None:
    if len(seeds) > MAX_SEEDS:
        raise ValueError(f"at most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    for i, seed in enumerate(seeds):
        if not isinstance(seed, (bytes, bytearray)):
            raise TypeError(f"seed[{i}] must be bytes")
        if len(seed) > MAX_SEED_LEN:
            raise ValueError(f"seed[{i}] exceeds {MAX_SEED_LEN} bytes: {len(seed)}")


def create_program_address(
    seeds: Sequence[bytes],
    program_id: Identifier = DEFAULT_PROGRAM_ID,
) -> Identifier:
    """
    Hash `seeds` under `program_id` with no bump search.

    Raises ValueError if the digest lands on the curve.
    """
    _check_seeds(seeds)
    h = hashlib.sha256()
    for seed in seeds:
        h.update(bytes(seed))
    h.update(program_id.raw)
    h.update(PDA_MARKER)
    digest = h.digest()
    if is_on_curve(digest):
        raise ValueError("derived address is on the ed25519 curve")
    return Identifier(digest)


def find_program_address(
    seeds: Sequence[bytes],
    program_id: Identifier = DEFAULT_PROGRAM_ID,
) -> Tuple[Identifier, int]:
    """
    Search bumps 255, 254, ..., 1 and return the first off-curve address.

    Bump 0 is never tried, as in the settling program. Raises
    DerivationExhaustedError if every bump lands on the curve (probability
    about 2^-255).
    """
    _check_seeds(list(seeds) + [b"\x00"])
    for bump in range(255, 0, -1):
        try:
            address = create_program_address([*seeds, bytes([bump])], program_id)
        except ValueError:
            continue
        return address, bump
    raise DerivationExhaustedError(f"no off-curve bump for {len(seeds)} seed(s)")


def derive(
    domain_tag: bytes,
    seeds: Sequence[bytes],
    nonce: int,
    program_id: Identifier = DEFAULT_PROGRAM_ID,
) -> Tuple[Identifier, int]:
    """
    Derive `(address, bump)` for `[domain_tag, *seeds, nonce]`.

    Pure and deterministic: equal inputs always give equal outputs.
    """
    if not isinstance(nonce, int) or isinstance(nonce, bool) or not (0 <= nonce <= 255):
        raise ValueError(f"nonce must be a byte in [0, 255]: {nonce!r}")
    return find_program_address([domain_tag, *seeds, bytes([nonce])], program_id)
