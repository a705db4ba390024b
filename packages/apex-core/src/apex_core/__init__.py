"""Core primitives shared across Apex services."""

from .config import ApexSettings, DEFAULT_RPC_URLS, load_settings
from .exceptions import (
    ApexException,
    AllEndpointsUnavailableError,
    ConfirmationPendingError,
    InsufficientBalanceError,
    InvalidAddressError,
    InvalidInputError,
    NetworkUnavailableError,
    SignerNotConfiguredError,
    SubmissionError,
)
from .logging_config import setup_logging

__all__ = [
    "ApexSettings",
    "DEFAULT_RPC_URLS",
    "load_settings",
    "ApexException",
    "AllEndpointsUnavailableError",
    "ConfirmationPendingError",
    "InsufficientBalanceError",
    "InvalidAddressError",
    "InvalidInputError",
    "NetworkUnavailableError",
    "SignerNotConfiguredError",
    "SubmissionError",
    "setup_logging",
]
