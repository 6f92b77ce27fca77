"""
Key material for the mothership client
"""

from .keys import (
    BlsIdentity,
    KeyGenerator,
    Keypair,
    counter_random_source,
    verify_bls,
    verify_ed25519,
)

__all__ = [
    "BlsIdentity",
    "KeyGenerator",
    "Keypair",
    "counter_random_source",
    "verify_bls",
    "verify_ed25519",
]
