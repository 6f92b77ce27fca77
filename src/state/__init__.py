"""
State and encoding primitives for the mothership core
"""

from .canonical import Identifier, canonical_json_bytes, decode_identifier

__all__ = [
    "Identifier",
    "canonical_json_bytes",
    "decode_identifier",
]
