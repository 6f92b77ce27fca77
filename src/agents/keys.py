"""
Key material for the mothership client.

- ed25519 keypairs (deployer, rotators) via PyNaCl
- BLS12-381 identity (G2Basic ciphersuite, as used for intent signing)

Randomness is injected as a `RandomSource` (n -> n random bytes) so tests
and reproducible runs can fix it.
"""

import hashlib
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

import nacl.utils
from nacl.signing import SigningKey, VerifyKey
from nacl.exceptions import BadSignatureError
from py_ecc.bls import G2Basic

from ..state.canonical import Identifier


RandomSource = Callable[[int], bytes]

SEED_LEN = 32


def system_random_source() -> RandomSource:
    return nacl.utils.random


def counter_random_source(seed: bytes) -> RandomSource:
    """
    Deterministic byte stream: SHA256(seed || counter) blocks.

    Only for tests and reproducible demos; never for production keys.
    """
    state = {"counter": 0}
    lock = threading.Lock()

    def _read(n: int) -> bytes:
        out = b""
        with lock:
            while len(out) < n:
                block = hashlib.sha256(seed + state["counter"].to_bytes(8, "little")).digest()
                state["counter"] += 1
                out += block
        return out[:n]

    return _read


@dataclass(frozen=True)
class Keypair:
    """ed25519 keypair; `public` is the 32-byte verify key as an Identifier."""

    seed: bytes = field(repr=False)
    public: Identifier

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        if len(seed) != SEED_LEN:
            raise ValueError(f"seed must be {SEED_LEN} bytes")
        verify_key = SigningKey(seed).verify_key
        return cls(seed=bytes(seed), public=Identifier(verify_key.encode()))

    def sign(self, message: bytes) -> bytes:
        return SigningKey(self.seed).sign(message).signature


def verify_ed25519(public: Identifier, message: bytes, signature: bytes) -> bool:
    try:
        VerifyKey(public.raw).verify(message, signature)
    except BadSignatureError:
        return False
    return True


class KeyGenerator:
    """Issues fresh ed25519 keypairs from a randomness source."""

    def __init__(self, random_source: Optional[RandomSource] = None):
        self._random = random_source or system_random_source()

    def keypair(self) -> Keypair:
        seed = self._random(SEED_LEN)
        if len(seed) != SEED_LEN:
            raise ValueError("random source returned the wrong number of bytes")
        return Keypair.from_seed(seed)


@dataclass(frozen=True)
class BlsIdentity:
    """BLS12-381 keypair: integer secret key, 48-byte compressed G1 pubkey."""

    secret_key: int = field(repr=False)
    public_key: bytes

    @classmethod
    def generate(cls, random_source: Optional[RandomSource] = None) -> "BlsIdentity":
        ikm = (random_source or system_random_source())(SEED_LEN)
        sk = G2Basic.KeyGen(ikm)
        return cls(secret_key=sk, public_key=bytes(G2Basic.SkToPk(sk)))

    def sign(self, message: bytes) -> bytes:
        return bytes(G2Basic.Sign(self.secret_key, message))


def verify_bls(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """
    Verify a G2Basic signature.

    Malformed keys/signatures are reported as invalid rather than raised.
    """
    try:
        return bool(G2Basic.Verify(public_key, message, signature))
    except (ValueError, TypeError, AssertionError):
        return False
