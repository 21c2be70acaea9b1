"""
Exception and Error Definitions Module

Defines the error taxonomy for the mint workflow. Every error carries an
optional wrapped cause so the original failure survives classification at
the HTTP boundary.

Exception Hierarchy:
    MintServiceError (root)
    ├── ValidationError
    ├── ServiceInitError
    │   └── ConfigurationError
    ├── WalletOperationError
    │   └── SigningError
    ├── RelayError
    ├── ShareStoreError
    └── RateLimitExceeded
"""

from enum import Enum
from typing import Optional


class MintServiceError(Exception):
    """
    Root exception class for all project-specific exceptions.

    Attributes:
        message: Human-readable description of the failure
        original_error: The lower-level exception that caused this one, if any
    """

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        if original_error is not None:
            self.__cause__ = original_error

    def describe(self) -> str:
        """Return the message followed by the chain of wrapped causes."""
        parts = [self.message]
        cause = self.original_error
        while cause is not None:
            parts.append(str(cause) or type(cause).__name__)
            cause = cause.original_error if isinstance(cause, MintServiceError) else None
        return ": ".join(parts)


class ValidationError(MintServiceError):
    """
    Raised when client input is malformed.

    This includes scenarios such as:
    - Neither email nor phone supplied
    - Email not shaped like local@domain.tld
    - Phone not in international format
    """
    pass


class ServiceInitError(MintServiceError):
    """
    Raised when a downstream session could not be established.

    Callers may retry after the advertised ``retryAfter``.
    """
    pass


class ConfigurationError(ServiceInitError):
    """
    Raised when configuration required by an adapter is missing or invalid.

    This includes scenarios such as:
    - Missing relay API key or gas policy id
    - Missing custodial service secret
    - Missing share store credentials
    """
    pass


class WalletOperationError(MintServiceError):
    """
    Raised when provisioning, signing or submission failed after the
    internal retry budget was spent.
    """
    pass


class SigningError(WalletOperationError):
    """
    Raised when a signature is malformed or the signer is unavailable.

    Surfaces to callers as a wallet operation failure.
    """
    pass


class RelayError(MintServiceError):
    """
    Raised when the bundler or gas manager JSON-RPC returns an error.

    Attributes:
        code: JSON-RPC or HTTP error code, when available
    """

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        *,
        code: Optional[int] = None,
    ):
        super().__init__(message, original_error)
        self.code = code


class ShareStoreError(MintServiceError):
    """
    Raised when the share database returns a genuine error.

    "No rows" is not an error and never raises.

    Attributes:
        code: Database error code (e.g. a PostgREST code)
        status: HTTP status of the failed request
    """

    def __init__(self, message: str, *, code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class RateLimitExceeded(MintServiceError):
    """Raised by the rate limiter when a client exhausted its window."""

    def __init__(self, message: str, *, reset_after: int = 0, limit: int = 0):
        super().__init__(message)
        self.reset_after = reset_after
        self.limit = limit


class ErrorKind(str, Enum):
    """Tagged failure kinds matched by the HTTP layer."""
    VALIDATION = "validation"
    CIRCUIT_OPEN = "circuit_open"
    SERVICE_INIT = "service_init"
    WALLET_OPERATION = "wallet_operation"
    INTERNAL = "internal"


def classify(error: BaseException) -> ErrorKind:
    """Map an exception to the failure kind reported to clients."""
    if isinstance(error, ValidationError):
        return ErrorKind.VALIDATION
    if isinstance(error, ServiceInitError):
        return ErrorKind.SERVICE_INIT
    if isinstance(error, WalletOperationError):
        return ErrorKind.WALLET_OPERATION
    return ErrorKind.INTERNAL
