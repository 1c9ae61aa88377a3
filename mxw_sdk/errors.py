"""
Errors for the mxw SDK.

All errors raised or returned by the SDK are built by :func:`create_error`,
which stamps the library version onto the message and flattens the context
parameters onto the error object as attributes.
"""
import json
from typing import Any, Dict, Optional, Type

from .version import __version__

# Object not initialized
NOT_INITIALIZED = "NOT_INITIALIZED"

# Transaction or block not found
NOT_FOUND = "NOT_FOUND"

# KYC registration is required
KYC_REQUIRED = "KYC_REQUIRED"

# Receiver KYC registration is required
RECEIVER_KYC_REQUIRED = "RECEIVER_KYC_REQUIRED"

# Resources not available
NOT_AVAILABLE = "NOT_AVAILABLE"

# Action not allowed
NOT_ALLOWED = "NOT_ALLOWED"

# Action is forbidden
FORBIDDEN = "FORBIDDEN"

# Result is not matched expectation
UNEXPECTED_RESULT = "UNEXPECTED_RESULT"

# Resources not registered
NOT_REGISTERED = "NOT_REGISTERED"

# Resources already exist
EXISTS = "EXISTS"

INVALID_PASSWORD = "INVALID_PASSWORD"
INVALID_ADDRESS = "INVALID_ADDRESS"
CONNECTION_ERROR = "CONNECTION_ERROR"
UNKNOWN_ERROR = "UNKNOWN_ERROR"
NOT_IMPLEMENTED = "NOT_IMPLEMENTED"

# Non-zero transaction status after inclusion
#   - transaction_hash, transaction
CALL_EXCEPTION = "CALL_EXCEPTION"

# Invalid argument (e.g. value is incompatible with type)
#   - argument, value
INVALID_ARGUMENT = "INVALID_ARGUMENT"

# Missing argument
#   - key, argument
MISSING_ARGUMENT = "MISSING_ARGUMENT"

MISSING_FEES = "MISSING_FEES"
UNEXPECTED_ARGUMENT = "UNEXPECTED_ARGUMENT"

# Numeric fault
#   - operation, fault
NUMERIC_FAULT = "NUMERIC_FAULT"

INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
INSUFFICIENT_FEES = "INSUFFICIENT_FEES"
UNSUPPORTED_OPERATION = "UNSUPPORTED_OPERATION"

# Invalid format
#   - value, key, object
INVALID_FORMAT = "INVALID_FORMAT"

SIGNATURE_FAILED = "SIGNATURE_FAILED"

# Polling gave up
TIMEOUT = "TIMEOUT"


class MxwError(Exception):
    """Base exception for all mxw SDK errors."""

    def __init__(self, message: str, reason: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message)
        self.reason = reason if reason is not None else message
        self.code = code or UNKNOWN_ERROR


class ValidationError(MxwError, ValueError):
    """Raised locally, before any network call, when input is malformed."""
    pass


class ProtocolError(MxwError):
    """Raised when a response breaks the expected protocol or integrity checks."""
    pass


class ChainRejectionError(MxwError):
    """A business rule rejection reported by the chain."""
    pass


class InfrastructureError(MxwError):
    """Raised for transport, lookup and capability failures."""
    pass


class MxwConnectionError(InfrastructureError, ConnectionError):
    """Raised when the node cannot be reached."""
    pass


class MxwTimeoutError(InfrastructureError, TimeoutError):
    """Raised when polling exceeds its timeout."""
    pass


class StateError(MxwError, RuntimeError):
    """Raised when an operation needs state that is not set up."""
    pass


_ERROR_CLASSES: Dict[str, Type[MxwError]] = {
    MISSING_ARGUMENT: ValidationError,
    UNEXPECTED_ARGUMENT: ValidationError,
    INVALID_ARGUMENT: ValidationError,
    INVALID_FORMAT: ValidationError,
    INVALID_ADDRESS: ValidationError,
    INVALID_PASSWORD: ValidationError,
    MISSING_FEES: ValidationError,

    UNEXPECTED_RESULT: ProtocolError,
    SIGNATURE_FAILED: ProtocolError,
    CALL_EXCEPTION: ProtocolError,
    UNKNOWN_ERROR: ProtocolError,

    KYC_REQUIRED: ChainRejectionError,
    RECEIVER_KYC_REQUIRED: ChainRejectionError,
    NOT_ALLOWED: ChainRejectionError,
    FORBIDDEN: ChainRejectionError,
    EXISTS: ChainRejectionError,
    NOT_REGISTERED: ChainRejectionError,
    INSUFFICIENT_FUNDS: ChainRejectionError,
    INSUFFICIENT_FEES: ChainRejectionError,
    NUMERIC_FAULT: ChainRejectionError,

    CONNECTION_ERROR: MxwConnectionError,
    NOT_FOUND: InfrastructureError,
    NOT_IMPLEMENTED: InfrastructureError,
    UNSUPPORTED_OPERATION: InfrastructureError,
    TIMEOUT: MxwTimeoutError,

    NOT_INITIALIZED: StateError,
    NOT_AVAILABLE: StateError,
}


def _describe(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return json.dumps(str(value))


def create_error(message: str, code: Optional[str] = None, params: Optional[Dict[str, Any]] = None) -> MxwError:
    """
    Build an SDK error without raising it.

    Args:
        message: Human readable reason
        code: One of the error code constants (defaults to UNKNOWN_ERROR)
        params: Context parameters, appended to the message and set as attributes

    Returns:
        An MxwError subclass instance matching the code's kind
    """
    code = code or UNKNOWN_ERROR
    params = params or {}

    details = [f"{key}={_describe(value)}" for key, value in params.items()]
    details.append(f"version={__version__}")

    error_class = _ERROR_CLASSES.get(code, MxwError)
    error = error_class(f"{message} ({', '.join(details)})", reason=message, code=code)

    for key, value in params.items():
        if key in ("reason", "code", "args"):
            continue
        setattr(error, key, value)

    return error


def throw_error(message: str, code: Optional[str] = None, params: Optional[Dict[str, Any]] = None):
    """Create an SDK error and raise it."""
    raise create_error(message, code, params)


def is_error_code(error: Any, code: str) -> bool:
    """Check whether ``error`` is an SDK error carrying ``code``."""
    return isinstance(error, MxwError) and error.code == code
