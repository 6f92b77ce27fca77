"""
Mothership client integration layer
"""

from .client import HandshakeResponse, MothershipClient, RotationOutcome
from .config import MothershipConfig, config_from_mapping, load_config

__all__ = [
    "HandshakeResponse",
    "MothershipClient",
    "RotationOutcome",
    "MothershipConfig",
    "config_from_mapping",
    "load_config",
]
