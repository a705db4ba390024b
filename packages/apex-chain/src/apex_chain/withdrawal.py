"""
Withdrawal pipeline: validate, check funds, price, sign, broadcast, confirm.

Submissions for one signing identity are serialized from the balance check
through broadcast, so the balance every submission sees already reflects the
transactions queued before it and pending nonces never collide. The wait for
confirmation happens outside that critical section.

Once a transaction has been broadcast it is never resubmitted. A failure after
broadcast is reconciled by hash and, if still unresolved, surfaced as
ConfirmationPendingError so the caller does not blindly retry.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional, Tuple

from web3 import Web3

from apex_core.config import ApexSettings
from apex_core.exceptions import (
    AllEndpointsUnavailableError,
    ConfirmationPendingError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidInputError,
    NetworkUnavailableError,
    SubmissionError,
)

from .confirmation import (
    TransactionRevertedError,
    receipt_block_number,
    receipt_succeeded,
    wait_for_confirmation,
)
from .models import TransactionIntent, TransactionReceipt
from .selector import ChainSession
from .session import ChainSessionHolder

logger = logging.getLogger(__name__)

TRANSFER_GAS_LIMIT = 21000


def parse_amount(value: Any) -> Decimal:
    """Parse a decimal ether amount. Floats go through ``str`` to keep their shortest form."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError("Missing required fields", field="amount")
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise InvalidInputError("Amount must be a number", field="amount")

    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidInputError("Amount must be a number", field="amount")

    if not amount.is_finite() or amount <= 0:
        raise InvalidInputError("Amount must be a positive number", field="amount")
    return amount


def amount_to_wei(amount: Decimal) -> int:
    """Convert a parsed ether amount to wei; anything under 1 wei is rejected."""
    try:
        amount_wei = int(Web3.to_wei(amount, "ether"))
    except ValueError:
        raise InvalidInputError("Amount is out of range", field="amount")
    if amount_wei <= 0:
        raise InvalidInputError("Amount is smaller than 1 wei", field="amount")
    return amount_wei


@dataclass(frozen=True)
class WithdrawalRequest:
    """A validated transfer request."""
    destination: str
    amount: Decimal
    amount_wei: int

    @classmethod
    def parse(cls, destination: Any, amount: Any) -> "WithdrawalRequest":
        """
        Validate raw request fields without touching the network.

        Every amount problem is reported before the destination is looked at.

        Raises:
            InvalidInputError: Missing destination or invalid amount
            InvalidAddressError: Destination is not a well-formed address
        """
        if destination is None or (isinstance(destination, str) and not destination.strip()):
            raise InvalidInputError("Missing required fields", field="toAddress")
        parsed_amount = parse_amount(amount)
        amount_wei = amount_to_wei(parsed_amount)

        if not isinstance(destination, str) or not Web3.is_address(destination.strip()):
            raise InvalidAddressError(str(destination))
        checksum = Web3.to_checksum_address(destination.strip())

        return cls(destination=checksum, amount=parsed_amount, amount_wei=amount_wei)


def format_ether(wei: int) -> Decimal:
    return Decimal(Web3.from_wei(wei, "ether"))


class WithdrawalPipeline:
    """Moves native currency from the signing identity to a destination."""

    def __init__(
        self,
        sessions: ChainSessionHolder,
        reserve_margin_eth: Decimal = Decimal("0.005"),
        default_gas_price_gwei: Decimal = Decimal("30"),
        gas_limit: int = TRANSFER_GAS_LIMIT,
        balance_check_attempts: int = 3,
        confirmations_required: int = 1,
        confirmation_timeout_seconds: float = 120.0,
        poll_interval_seconds: float = 2.0,
    ):
        self._sessions = sessions
        self._reserve_wei = int(Web3.to_wei(reserve_margin_eth, "ether"))
        self._default_gas_price_wei = int(Web3.to_wei(default_gas_price_gwei, "gwei"))
        self._gas_limit = gas_limit
        self._balance_attempts = max(1, balance_check_attempts)
        self._confirmations = confirmations_required
        self._confirmation_timeout = confirmation_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._submission_locks: Dict[str, asyncio.Lock] = {}

    @classmethod
    def from_settings(
        cls,
        settings: ApexSettings,
        sessions: ChainSessionHolder,
    ) -> "WithdrawalPipeline":
        return cls(
            sessions,
            reserve_margin_eth=settings.reserve_margin_eth,
            default_gas_price_gwei=settings.default_gas_price_gwei,
            gas_limit=settings.transfer_gas_limit,
            balance_check_attempts=settings.balance_check_attempts,
            confirmations_required=settings.confirmations_required,
            confirmation_timeout_seconds=settings.confirmation_timeout_seconds,
            poll_interval_seconds=settings.confirmation_poll_interval_seconds,
        )

    @property
    def reserve_wei(self) -> int:
        return self._reserve_wei

    @property
    def default_gas_price_wei(self) -> int:
        return self._default_gas_price_wei

    def _submission_lock(self, address: str) -> asyncio.Lock:
        lock = self._submission_locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._submission_locks[address] = lock
        return lock

    async def _session(self) -> ChainSession:
        try:
            return await self._sessions.get()
        except AllEndpointsUnavailableError as e:
            raise NetworkUnavailableError(
                "Failed to connect to Ethereum network", operation="connect"
            ) from e

    async def _replace(self, stale: ChainSession) -> ChainSession:
        """Swap in a fresh session; keep ``stale`` if no endpoint answers."""
        try:
            return await self._sessions.reacquire(stale)
        except AllEndpointsUnavailableError as e:
            logger.warning(f"Re-acquisition failed: {e.message}")
            return stale

    async def _fetch_balance(self, session: ChainSession) -> Tuple[ChainSession, int]:
        for attempt in range(1, self._balance_attempts + 1):
            try:
                balance_wei = await session.client.get_balance(session.address, "latest")
                return session, balance_wei
            except Exception as e:
                logger.warning(
                    f"Balance check attempt {attempt}/{self._balance_attempts} failed: {e}"
                )
                if attempt == self._balance_attempts:
                    raise NetworkUnavailableError(
                        "RPC connection failed", operation="balance"
                    ) from e
                session = await self._replace(session)
        raise NetworkUnavailableError("RPC connection failed", operation="balance")

    def _check_funds(self, request: WithdrawalRequest, balance_wei: int) -> None:
        required_wei = request.amount_wei + self._reserve_wei
        if balance_wei < required_wei:
            balance = format_ether(balance_wei)
            logger.warning(
                f"Insufficient balance: have {balance} ETH, need {format_ether(required_wei)} ETH"
            )
            raise InsufficientBalanceError(
                balance=str(balance),
                required=str(format_ether(required_wei)),
            )

    async def _fee(self, session: ChainSession) -> int:
        try:
            gas_price = await session.client.get_gas_price()
        except Exception as e:
            logger.warning(f"Fee query failed, using default gas price: {e}")
            return self._default_gas_price_wei
        if not gas_price:
            return self._default_gas_price_wei
        return gas_price

    async def _next_nonce(self, session: ChainSession) -> Tuple[ChainSession, int]:
        try:
            return session, await session.client.get_nonce(session.address, "pending")
        except Exception as e:
            logger.warning(f"Nonce query failed, retrying on a fresh session: {e}")

        session = await self._replace(session)
        try:
            return session, await session.client.get_nonce(session.address, "pending")
        except Exception as e:
            raise NetworkUnavailableError("RPC connection failed", operation="nonce") from e

    async def _reconcile(self, session: ChainSession, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Look the transaction up once more; None means still unresolved.

        The current session is asked first. Only a failed lookup moves the
        lookup to a freshly acquired session.
        """
        try:
            receipt = await session.client.get_transaction_receipt(tx_hash)
        except Exception as e:
            logger.warning(f"Reconciliation lookup for {tx_hash} failed, re-acquiring: {e}")
            fresh = await self._replace(session)
            if fresh is session:
                return None
            try:
                receipt = await fresh.client.get_transaction_receipt(tx_hash)
            except Exception as e:
                logger.warning(f"Reconciliation lookup for {tx_hash} failed: {e}")
                return None
        if not receipt:
            return None
        if not receipt_succeeded(receipt):
            raise SubmissionError(f"Transaction {tx_hash} failed on-chain", tx_hash=tx_hash)
        return receipt

    async def _confirm(self, session: ChainSession, tx_hash: str, nonce: int) -> Dict[str, Any]:
        try:
            return await wait_for_confirmation(
                session.client,
                tx_hash,
                confirmations=self._confirmations,
                timeout_seconds=self._confirmation_timeout,
                poll_interval_seconds=self._poll_interval,
            )
        except TransactionRevertedError as e:
            raise SubmissionError(str(e), tx_hash=tx_hash) from e
        except Exception as e:
            reason = str(e) or type(e).__name__
            logger.error(f"Confirmation wait for {tx_hash} failed: {reason}")
            receipt = await self._reconcile(session, tx_hash)
            if receipt is None:
                raise ConfirmationPendingError(tx_hash, nonce, reason) from e
            return receipt

    async def submit_withdrawal(self, destination: Any, amount: Any) -> TransactionReceipt:
        """
        Send ``amount`` ether to ``destination`` and wait for confirmation.

        Raises:
            InvalidInputError: Missing fields or invalid amount
            InvalidAddressError: Malformed destination
            SignerNotConfiguredError: No signing credential configured
            NetworkUnavailableError: Balance or nonce queries kept failing
            InsufficientBalanceError: Balance below amount plus reserve
            SubmissionError: Signing or broadcast failed, or the tx reverted
            ConfirmationPendingError: Broadcast succeeded, outcome unknown
        """
        request = WithdrawalRequest.parse(destination, amount)
        session = await self._session()

        logger.info(f"Withdrawal: {request.amount} ETH to {request.destination}")

        async with self._submission_lock(session.address):
            session, balance_wei = await self._fetch_balance(session)
            logger.info(f"Balance: {format_ether(balance_wei)} ETH")
            self._check_funds(request, balance_wei)

            gas_price = await self._fee(session)
            session, nonce = await self._next_nonce(session)

            intent = TransactionIntent(
                to_address=request.destination,
                value_wei=request.amount_wei,
                nonce=nonce,
                gas_limit=self._gas_limit,
                gas_price_wei=gas_price,
                chain_id=session.connection.chain_id,
            )
            try:
                signed = session.identity.sign_transaction(intent)
                node_hash = await session.client.send_raw_transaction(signed.raw_transaction)
            except Exception as e:
                logger.error(f"Submission failed at nonce {nonce}: {e}")
                raise SubmissionError(str(e) or "Transaction submission failed") from e

            tx_hash = node_hash or signed.tx_hash
            logger.info(f"TX sent: {tx_hash}", extra={"tx_hash": tx_hash, "nonce": nonce})

        receipt = await self._confirm(session, tx_hash, nonce)
        block_number = receipt_block_number(receipt)
        logger.info(f"TX confirmed: {tx_hash} in block {block_number}")

        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=block_number,
            from_address=session.address,
            to_address=request.destination,
            amount=request.amount,
            nonce=nonce,
            gas_price_wei=gas_price,
        )

    async def get_signer_balance(self) -> Tuple[str, Decimal]:
        """Return the signing address and its balance in ether."""
        session = await self._session()
        session, balance_wei = await self._fetch_balance(session)
        return session.address, format_ether(balance_wei)
