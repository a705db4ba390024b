"""Local signing identity backed by a durable private key."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from .models import SignedPayload, TransactionIntent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SigningIdentity:
    """Credential-derived actor that authorizes outbound transfers.

    The key material stays inside the wrapped account; only signed payloads
    leave this object.
    """
    address: str
    _account: LocalAccount = field(repr=False, compare=False)

    @classmethod
    def from_private_key(cls, private_key: str) -> "SigningIdentity":
        account: LocalAccount = Account.from_key(private_key)
        return cls(address=account.address, _account=account)

    def sign_transaction(self, intent: TransactionIntent) -> SignedPayload:
        signed = self._account.sign_transaction(intent.to_tx_dict())
        payload = SignedPayload(
            raw_transaction=Web3.to_hex(signed.raw_transaction),
            tx_hash=Web3.to_hex(signed.hash),
        )
        logger.debug(f"Signed nonce {intent.nonce} for {self.address}: {payload.tx_hash}")
        return payload
