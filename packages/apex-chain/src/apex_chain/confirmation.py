"""Transaction confirmation polling."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ConfirmationTimeoutError(Exception):
    """Raised when a receipt with enough confirmations did not appear in time."""

    def __init__(self, tx_hash: str, timeout_seconds: float):
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout_seconds}s")


class TransactionRevertedError(Exception):
    """Raised when the receipt reports status 0."""

    def __init__(self, tx_hash: str, block_number: Optional[int] = None):
        self.tx_hash = tx_hash
        self.block_number = block_number
        super().__init__(f"Transaction {tx_hash} failed on-chain")


def _hex_to_int(value: Any, default: int = 0) -> int:
    if value is None:
        return default
    if isinstance(value, int):
        return value
    return int(value, 16)


def receipt_block_number(receipt: Dict[str, Any]) -> int:
    return _hex_to_int(receipt.get("blockNumber"))


def receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    # Pre-Byzantium receipts carry no status field.
    return _hex_to_int(receipt.get("status"), default=1) == 1


async def wait_for_confirmation(
    client: Any,
    tx_hash: str,
    confirmations: int = 1,
    timeout_seconds: float = 120.0,
    poll_interval_seconds: float = 2.0,
) -> Dict[str, Any]:
    """
    Poll until ``tx_hash`` has at least ``confirmations`` confirmations.

    Inclusion in a block counts as the first confirmation.

    Raises:
        TransactionRevertedError: If the transaction was mined but failed
        ConfirmationTimeoutError: If the timeout elapsed first
    """
    loop = asyncio.get_running_loop()
    start_time = loop.time()

    while True:
        if loop.time() - start_time > timeout_seconds:
            raise ConfirmationTimeoutError(tx_hash, timeout_seconds)

        receipt = await client.get_transaction_receipt(tx_hash)

        if receipt:
            tx_block = receipt_block_number(receipt)
            if not receipt_succeeded(receipt):
                raise TransactionRevertedError(tx_hash, tx_block)

            if confirmations <= 1:
                return receipt

            current_block = await client.get_block_number()
            seen = current_block - tx_block + 1
            if seen >= confirmations:
                logger.info(f"Transaction {tx_hash} confirmed with {seen} confirmations")
                return receipt

            logger.debug(f"Transaction {tx_hash} has {seen} confirmations, waiting for {confirmations}")

        await asyncio.sleep(poll_interval_seconds)
