"""HTTP middleware for the Apex API."""
from .exceptions import RFC7807Error, create_error_response, register_exception_handlers
from .logging import StructuredLoggingMiddleware

__all__ = [
    "RFC7807Error",
    "StructuredLoggingMiddleware",
    "create_error_response",
    "register_exception_handlers",
]
