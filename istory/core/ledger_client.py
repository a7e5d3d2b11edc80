"""Read-only client for the VerifiedMetrics contract.

Stories are keyed on-chain by their id with dashes removed, right-padded
with ``0`` to 64 hex characters (a ``bytes32``). The compute network that
writes the record uses the same encoding.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from web3 import AsyncHTTPProvider, AsyncWeb3

from istory.core.config import LedgerSettings
from istory.core.exceptions import LedgerReadError, ValidationError
from istory.utils.logging import get_logger

LOGGER = get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

VERIFIED_METRICS_ABI = [
    {
        "type": "function",
        "name": "isVerified",
        "stateMutability": "view",
        "inputs": [{"name": "storyId", "type": "bytes32"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "type": "function",
        "name": "getMetrics",
        "stateMutability": "view",
        "inputs": [{"name": "storyId", "type": "bytes32"}],
        "outputs": [
            {"name": "significanceScore", "type": "uint8"},
            {"name": "emotionalDepth", "type": "uint8"},
            {"name": "qualityScore", "type": "uint8"},
            {"name": "wordCount", "type": "uint32"},
            {"name": "themes", "type": "string[]"},
            {"name": "attestationId", "type": "bytes32"},
            {"name": "verifiedAt", "type": "uint256"},
        ],
    },
]

_HEX = re.compile(r"^[0-9a-fA-F]*$")


def story_key_to_bytes32(story_id: str) -> bytes:
    """Encode a story id as the contract's bytes32 key.

    Raises:
        ValidationError: If the id is not hex once dashes are removed, or too long
    """
    digits = story_id.replace("-", "")
    if not digits or not _HEX.match(digits) or len(digits) > 64:
        raise ValidationError(f"Story ID cannot be encoded as a ledger key: {story_id}")
    return bytes.fromhex(digits.ljust(64, "0"))


@dataclass
class OnChainMetrics:
    significance_score: int
    emotional_depth: int
    quality_score: int
    word_count: int
    themes: List[str]
    attestation_id: str
    verified_at: int


class LedgerClient:
    """Reads verified story metrics from the contract."""

    def __init__(self, rpc_url: str, contract_address: Optional[str], timeout: int = 15):
        self.rpc_url = rpc_url
        self.contract_address = contract_address or ""
        self._contract = None
        if self.is_deployed:
            w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
            self._contract = w3.eth.contract(
                address=AsyncWeb3.to_checksum_address(self.contract_address),
                abi=VERIFIED_METRICS_ABI,
            )

    @classmethod
    def from_settings(cls, ledger_settings: LedgerSettings) -> "LedgerClient":
        return cls(
            rpc_url=ledger_settings.rpc_url,
            contract_address=ledger_settings.verified_metrics_address,
            timeout=ledger_settings.timeout_seconds,
        )

    @property
    def is_deployed(self) -> bool:
        address = self.contract_address.strip()
        return bool(address) and address.lower() != ZERO_ADDRESS

    async def read_metrics(self, story_id: str) -> Optional[OnChainMetrics]:
        """Return the on-chain record for a story, or None if it has none.

        Raises:
            ValidationError: If the story id cannot be encoded
            LedgerReadError: If the contract is not configured or the RPC read fails
        """
        key = story_key_to_bytes32(story_id)
        if self._contract is None:
            raise LedgerReadError("VerifiedMetrics contract is not deployed")

        try:
            verified = await self._contract.functions.isVerified(key).call()
            if not verified:
                return None
            (
                significance,
                depth,
                quality,
                word_count,
                themes,
                attestation_id,
                verified_at,
            ) = await self._contract.functions.getMetrics(key).call()
        except Exception as e:
            LOGGER.error(
                f"Ledger read failed: {e}",
                extra={"story_id": story_id, "rpc_url": self.rpc_url},
            )
            raise LedgerReadError(f"Failed to read verified metrics: {e}", original_error=e) from e

        return OnChainMetrics(
            significance_score=int(significance),
            emotional_depth=int(depth),
            quality_score=int(quality),
            word_count=int(word_count),
            themes=list(themes),
            attestation_id="0x" + bytes(attestation_id).hex(),
            verified_at=int(verified_at),
        )
