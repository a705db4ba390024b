"""Value types passed between the selector, signer and withdrawal pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from apex_core.logging_config import mask_url


@dataclass(frozen=True)
class EndpointDescriptor:
    """A remote RPC service. Lower priority value is probed first."""
    url: str
    priority: int = 0

    @property
    def masked_url(self) -> str:
        return mask_url(self.url)


@dataclass(frozen=True)
class TransactionIntent:
    """A plain value transfer, ready to be signed."""
    to_address: str
    value_wei: int
    nonce: int
    gas_limit: int
    gas_price_wei: int
    chain_id: int

    def to_tx_dict(self) -> Dict[str, Any]:
        return {
            "to": self.to_address,
            "value": self.value_wei,
            "nonce": self.nonce,
            "gas": self.gas_limit,
            "gasPrice": self.gas_price_wei,
            "chainId": self.chain_id,
        }


@dataclass(frozen=True)
class SignedPayload:
    """Raw signed transaction and its locally computed hash."""
    raw_transaction: str
    tx_hash: str


@dataclass(frozen=True)
class TransactionReceipt:
    """Outcome of a confirmed withdrawal."""
    tx_hash: str
    block_number: int
    from_address: str
    to_address: str
    amount: Decimal
    nonce: int
    gas_price_wei: int
    status: str = "success"
    confirmed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
