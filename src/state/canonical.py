"""
Deterministic canonical encoding primitives.

These helpers are used at every boundary where identifiers or amounts cross
into (or out of) the core: the base58 text form of 32-byte identifiers,
unsigned 64-bit amount checks, and canonical JSON for signing/hashing.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any

import base58

from ..core.errors import ArithmeticOverflowError, InvalidIdentifierEncodingError


IDENTIFIER_LEN = 32

U64_MAX = (1 << 64) - 1
# Products are evaluated exactly, but never allowed past a u128 intermediate.
U128_MAX = (1 << 128) - 1

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
# 32 bytes encode to at most 44 base58 chars (32 when every byte is zero).
_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


@dataclass(frozen=True)
class Identifier:
    """Fixed-length opaque account/key identifier (32 bytes)."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)):
            raise TypeError("raw must be bytes")
        if len(self.raw) != IDENTIFIER_LEN:
            raise ValueError(f"identifier must be {IDENTIFIER_LEN} bytes, got {len(self.raw)}")
        object.__setattr__(self, "raw", bytes(self.raw))

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base58.b58encode(self.raw).decode("ascii")

    def __repr__(self) -> str:
        return f"Identifier({self})"

    @classmethod
    def from_base58(cls, text: str) -> "Identifier":
        return cls(decode_identifier(text))


def decode_identifier(text: str) -> bytes:
    """
    Validate and decode a base58 identifier string.

    Alphabet and length are checked before decoding; any failure raises
    `InvalidIdentifierEncodingError`.
    """
    if not isinstance(text, str):
        raise InvalidIdentifierEncodingError("identifier must be a str")
    if not _BASE58_RE.fullmatch(text):
        raise InvalidIdentifierEncodingError(f"identifier is not canonical base58: {text!r}")
    raw = base58.b58decode(text)
    if len(raw) != IDENTIFIER_LEN:
        raise InvalidIdentifierEncodingError(
            f"identifier must decode to {IDENTIFIER_LEN} bytes, got {len(raw)}"
        )
    return raw


def require_u64(value: int, *, name: str) -> int:
    """Reject anything that is not an int in [0, 2^64)."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if not (0 <= value <= U64_MAX):
        raise ValueError(f"{name} must be a u64: {value}")
    return value


def checked_u64(value: int, *, name: str) -> int:
    """Surface a computed result that does not fit u64 as an overflow."""
    if value > U64_MAX:
        raise ArithmeticOverflowError(f"{name} overflows u64: {value}")
    return value


def checked_mul(a: int, b: int, *, name: str) -> int:
    """Multiply two u64 operands, keeping the product within u64."""
    return checked_u64(a * b, name=name)


def checked_mul_div(a: int, b: int, denom: int, *, name: str) -> int:
    """
    floor(a * b / denom) with a u128 intermediate and a u64 result.

    Truncates toward zero (all operands are non-negative).
    """
    if denom <= 0:
        raise ValueError(f"{name}: denominator must be positive")
    product = a * b
    if product > U128_MAX:
        raise ArithmeticOverflowError(f"{name}: intermediate product overflows u128")
    return checked_u64(product // denom, name=name)


def _reject_surrogates(s: str) -> None:
    # Surrogate code points are not valid Unicode scalar values and lead to
    # implementation-defined behavior across JSON encoders/UTF-8 encoders.
    for ch in s:
        o = ord(ch)
        if 0xD800 <= o <= 0xDFFF:
            raise TypeError("surrogate code points are not allowed in canonical encoding")


def _reject_floats(value: Any) -> None:
    if isinstance(value, float):
        raise TypeError("floats are not allowed in canonical encoding")
    if isinstance(value, str):
        _reject_surrogates(value)
    if isinstance(value, dict):
        for k in value.keys():
            if not isinstance(k, str):
                raise TypeError("dict keys must be str for canonical encoding")
        for k, v in value.items():
            _reject_surrogates(k)
            _reject_floats(v)
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _reject_floats(item)
        return


def canonical_json_bytes(value: Any) -> bytes:
    """
    Canonical JSON encoding for hashing/signing.

    Rules:
    - UTF-8
    - sort_keys=True
    - separators=(',', ':') (no whitespace)
    - allow_nan=False
    - floats rejected (amounts are integers in base units)
    """
    _reject_floats(value)
    text = json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    return text.encode("utf-8")


def domain_sep_bytes(label: str, version: int = 1) -> bytes:
    """
    Create a domain separation prefix.

    The output is ASCII-only and NUL-terminated to make concatenation unambiguous.
    """
    if not isinstance(label, str) or not label:
        raise TypeError("label must be a non-empty str")
    if "\x00" in label:
        raise ValueError("label must not contain NUL")
    try:
        label_bytes = label.encode("ascii")
    except UnicodeEncodeError as exc:
        raise ValueError("label must be ASCII") from exc
    if not isinstance(version, int) or isinstance(version, bool) or version <= 0:
        raise ValueError("version must be a positive int")
    return b"mothership:" + label_bytes + b":v" + str(version).encode("ascii") + b"\x00"
