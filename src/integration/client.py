"""
Mothership client (imperative shell).

Wires the pure kernels to a registry, a clock and key material, and exposes
the caller-facing surface: register/rotate, per-transfer limits and tax, and
derived-address getters. Results are dataclasses with `to_dict()` for JSON.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..agents.keys import BlsIdentity, KeyGenerator, RandomSource, verify_bls
from ..core import fees, rate_tiers
from ..core.derivation import derive, find_program_address
from ..core.errors import RotationNotEligibleError
from ..core.vanity import MEME_TAG
from ..state.canonical import Identifier, canonical_json_bytes, domain_sep_bytes, require_u64
from ..state.registry import AssetRegistry
from .config import MothershipConfig


log = logging.getLogger(__name__)

VAULT_TAG = b"zk_vault"
CONTRACT_TAG = b"contract"
SWAP_STATE_TAG = b"swap-state"

HANDSHAKE_DOMAIN = "handshake"


@dataclass(frozen=True)
class HandshakeResponse:
    vanity_program_id: Identifier
    spmp_mint: str
    rotator_pk: Identifier
    mothership_pda: Identifier

    def to_dict(self) -> Dict[str, str]:
        return {
            "vanity_program_id": str(self.vanity_program_id),
            "spmp_mint": self.spmp_mint,
            "rotator_pk": str(self.rotator_pk),
            "mothership_pda": str(self.mothership_pda),
        }

    def signing_bytes(self) -> bytes:
        # Sign SHA256(domain_sep(handshake) || canonical_json(response)).
        payload = domain_sep_bytes(HANDSHAKE_DOMAIN) + canonical_json_bytes(self.to_dict())
        return hashlib.sha256(payload).digest()


@dataclass(frozen=True)
class RotationOutcome:
    ok: bool
    rotator_pk: Optional[Identifier] = None
    rejection: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "ok": self.ok,
            "rotator_pk": str(self.rotator_pk) if self.rotator_pk is not None else None,
            "rejection": self.rejection,
        }


class MothershipClient:
    """
    Usage:
        client = MothershipClient()
        resp = client.register_meme("Dogecoin", "DOGE")
        outcome = client.rotate_rotator(str(resp.vanity_program_id))
        cap = client.size_cap(mcap_lamports, supply, top_tier_lamports)
    """

    def __init__(
        self,
        config: Optional[MothershipConfig] = None,
        *,
        random_source: Optional[RandomSource] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or MothershipConfig()
        self._clock = clock
        keys = KeyGenerator(random_source)
        self._deployer = keys.keypair()
        self._bls = BlsIdentity.generate(random_source)
        self.registry = AssetRegistry(
            program_id=self.config.program_id,
            vanity_suffix=self.config.vanity_suffix,
            case_sensitive_suffix=self.config.case_sensitive_suffix,
            min_dwell_seconds=self.config.min_dwell_seconds,
            single_active_rotator=self.config.single_active_rotator,
            key_generator=keys,
        )

    def _now(self) -> int:
        return int(self._clock())

    @property
    def deployer(self) -> Identifier:
        return self._deployer.public

    @property
    def bls_public_key(self) -> bytes:
        return self._bls.public_key

    # -- handshake / rotation ------------------------------------------------

    def register_meme(self, name: str, symbol: str) -> HandshakeResponse:
        """Mine a vanity id, record it, and return the handshake response.

        Raises MiningFailedError or DuplicateLabelError.
        """
        entry = self.registry.register(name, symbol, self.deployer, self._now())
        rotator = self.registry.current_rotator(entry.cosmetic_address)
        return HandshakeResponse(
            vanity_program_id=entry.cosmetic_address,
            spmp_mint=entry.label,
            rotator_pk=rotator.public,
            mothership_pda=self.mothership_pda(),
        )

    def rotate_rotator(self, vanity_id: str, now: Optional[int] = None) -> RotationOutcome:
        """
        Rotate the ephemeral key for `vanity_id`.

        Ineligibility is reported as a rejection code; a malformed id raises
        InvalidIdentifierEncodingError.
        """
        address = Identifier.from_base58(vanity_id)
        when = self._now() if now is None else now
        try:
            kp = self.registry.rotate(address, when)
        except RotationNotEligibleError as exc:
            log.debug("rotation refused for %s: %s", vanity_id, exc.reason)
            return RotationOutcome(ok=False, rejection=exc.reason)
        return RotationOutcome(ok=True, rotator_pk=kp.public)

    def retire(self, vanity_id: str) -> None:
        self.registry.retire(Identifier.from_base58(vanity_id))

    def sign_handshake(self, response: HandshakeResponse) -> bytes:
        return self._bls.sign(response.signing_bytes())

    @staticmethod
    def verify_handshake(response: HandshakeResponse, signature: bytes, bls_public_key: bytes) -> bool:
        return verify_bls(bls_public_key, response.signing_bytes(), signature)

    # -- limits and tax --------------------------------------------------------

    def velocity_limit(self, mcap_lamports: int) -> int:
        return rate_tiers.velocity_limit(mcap_lamports, self.config.tier_table)

    def size_cap(self, mcap_lamports: int, supply: int, top_tier_lamports: int) -> int:
        return rate_tiers.size_cap(mcap_lamports, supply, top_tier_lamports, self.config.tier_table)

    def split(self, amount_in: int) -> fees.FeeBreakdown:
        return fees.split(amount_in, self.config.fee_split)

    # -- derived addresses -----------------------------------------------------

    def mothership_pda(self) -> Identifier:
        return find_program_address([CONTRACT_TAG, self.deployer.raw], self.config.program_id)[0]

    def vault_pda(self, user: str) -> Identifier:
        user_pk = Identifier.from_base58(user)
        return find_program_address([VAULT_TAG, user_pk.raw], self.config.program_id)[0]

    def meme_pda(self, name: str, spmp_mint: str, nonce: int) -> Identifier:
        """Derived address for one vanity nonce; equals the registered id at its nonce."""
        address, _bump = derive(
            MEME_TAG, [name.encode("utf-8"), spmp_mint.encode("utf-8")], nonce, self.config.program_id
        )
        return address

    def swap_state_pda(self, slot: int) -> Identifier:
        require_u64(slot, name="slot")
        return find_program_address(
            [SWAP_STATE_TAG, slot.to_bytes(8, "little")], self.config.program_id
        )[0]
