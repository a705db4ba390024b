"""Unified exception hierarchy for the Apex backend.

All Apex-specific exceptions inherit from ApexException, enabling:
- Consistent error handling across packages
- Proper HTTP status code mapping in the API layer
- Structured error responses with machine-readable error codes

All exceptions have:
- error_code: Machine-readable error code (e.g., "INVALID_ADDRESS")
- http_status: Appropriate HTTP status code for API responses
- message: Human-readable error message
- details: Optional additional context dictionary
- to_dict(): Convert to API response format

Withdrawal failures map onto the classification the API reports:

    InvalidInputError          INVALID_INPUT              400
    InvalidAddressError        INVALID_ADDRESS            400
    InsufficientBalanceError   INSUFFICIENT_BALANCE       400
    NetworkUnavailableError    NETWORK_UNAVAILABLE        503
    AllEndpointsUnavailable    ALL_ENDPOINTS_UNAVAILABLE  503
    SignerNotConfiguredError   SIGNER_NOT_CONFIGURED      503
    SubmissionError            SUBMISSION_ERROR           502
    ConfirmationPendingError   CONFIRMATION_PENDING       504
"""
from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple


class ApexException(Exception):
    """Base exception for all Apex errors."""

    error_code: str = "APEX_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Request validation (4xx, never retried)
# =============================================================================

class InvalidInputError(ApexException):
    """Missing destination/amount, or amount is not a positive finite number."""

    error_code = "INVALID_INPUT"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details)


class InvalidAddressError(ApexException):
    """Destination is not a well-formed ledger address."""

    error_code = "INVALID_ADDRESS"
    http_status = 400

    def __init__(self, address: str, details: Optional[dict[str, Any]] = None) -> None:
        details = details or {}
        details["address"] = address
        super().__init__("Invalid Ethereum address", details=details)


class InsufficientBalanceError(ApexException):
    """Signer balance does not cover amount plus the fee reserve."""

    error_code = "INSUFFICIENT_BALANCE"
    http_status = 400

    def __init__(
        self,
        balance: str,
        required: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.balance = balance
        self.required = required
        details = details or {}
        details["available"] = balance
        details["required"] = required
        super().__init__("Insufficient balance", details=details)


# =============================================================================
# Network errors (retryable by the caller)
# =============================================================================

class NetworkUnavailableError(ApexException):
    """Balance/fee/nonce queries failed after local retries."""

    error_code = "NETWORK_UNAVAILABLE"
    http_status = 503

    def __init__(
        self,
        message: str = "RPC connection failed",
        operation: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if operation:
            details["operation"] = operation
        super().__init__(message, details=details)


class AllEndpointsUnavailableError(ApexException):
    """Every candidate endpoint failed its liveness probe."""

    error_code = "ALL_ENDPOINTS_UNAVAILABLE"
    http_status = 503

    def __init__(
        self,
        errors: Sequence[Tuple[str, str]],
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.errors = list(errors)
        error_summary = "; ".join(f"{url}: {err}" for url, err in self.errors[:3])
        details = details or {}
        details["endpoints_tried"] = len(self.errors)
        message = "All RPC endpoints failed"
        if error_summary:
            message = f"{message}. Errors: {error_summary}"
        super().__init__(message, details=details)


class SignerNotConfiguredError(ApexException):
    """No signing credential was supplied to the process."""

    error_code = "SIGNER_NOT_CONFIGURED"
    http_status = 503

    def __init__(self, message: str = "Signing credential is not configured") -> None:
        super().__init__(message)


# =============================================================================
# Submission errors (never retried automatically)
# =============================================================================

class SubmissionError(ApexException):
    """Signing, broadcast, or on-chain execution failed."""

    error_code = "SUBMISSION_ERROR"
    http_status = 502

    def __init__(
        self,
        message: str,
        tx_hash: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.tx_hash = tx_hash
        details = details or {}
        if tx_hash:
            details["tx_hash"] = tx_hash
        super().__init__(message, details=details)


class ConfirmationPendingError(ApexException):
    """Broadcast succeeded but confirmation could not be observed.

    Funds may already have moved. The transaction must be reconciled by hash
    before anyone retries the withdrawal.
    """

    error_code = "CONFIRMATION_PENDING"
    http_status = 504

    def __init__(
        self,
        tx_hash: str,
        nonce: int,
        reason: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.tx_hash = tx_hash
        self.nonce = nonce
        details = details or {}
        details["tx_hash"] = tx_hash
        details["nonce"] = nonce
        details["reason"] = reason
        super().__init__(
            f"Transaction {tx_hash} was broadcast but not confirmed: {reason}",
            details=details,
        )
