"""Ledger connectivity and withdrawal execution."""

from .confirmation import ConfirmationTimeoutError, TransactionRevertedError, wait_for_confirmation
from .models import EndpointDescriptor, SignedPayload, TransactionIntent, TransactionReceipt
from .rpc_client import ChainIDMismatchError, ChainRPCClient, RPCError
from .selector import ChainSession, Connection, EndpointSelector, ProbeOutcome, endpoints_from_urls
from .session import ChainSessionHolder
from .signer import SigningIdentity
from .withdrawal import WithdrawalPipeline, WithdrawalRequest, parse_amount

__all__ = [
    "ChainIDMismatchError",
    "ChainRPCClient",
    "ChainSession",
    "ChainSessionHolder",
    "ConfirmationTimeoutError",
    "Connection",
    "EndpointDescriptor",
    "EndpointSelector",
    "ProbeOutcome",
    "RPCError",
    "SignedPayload",
    "SigningIdentity",
    "TransactionIntent",
    "TransactionReceipt",
    "TransactionRevertedError",
    "WithdrawalPipeline",
    "WithdrawalRequest",
    "endpoints_from_urls",
    "parse_amount",
    "wait_for_confirmation",
]
