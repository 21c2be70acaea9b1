from .bases import (
    CanonicalModel,
    IdentifierKind,
    WalletType,
    WalletHandle,
    WalletShareRecord,
    ShareEntry,
    UserSharePayload,
    SignatureResponse,
    CircuitBreakerState,
)
from .https import MintRequest, MintResult, ErrorResponse, HealthEnvironment, HealthReport

__all__ = [
    "CanonicalModel",
    "IdentifierKind",
    "WalletType",
    "WalletHandle",
    "WalletShareRecord",
    "ShareEntry",
    "UserSharePayload",
    "SignatureResponse",
    "CircuitBreakerState",
    "MintRequest",
    "MintResult",
    "ErrorResponse",
    "HealthEnvironment",
    "HealthReport",
]
