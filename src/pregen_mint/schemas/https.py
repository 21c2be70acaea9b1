"""
HTTP Request/Response Schema Models for the Mint Service

This module defines the Pydantic models exchanged over HTTP:

1. Client submits a ``MintRequest`` with an email or a phone number
2. Server answers with a ``MintResult`` or an ``ErrorResponse``
3. ``HealthReport`` describes downstream reachability for ``GET /health``

Wire names are camelCase; Python attributes are snake_case.
"""

from typing import Optional

from pydantic import BaseModel, Field, ConfigDict

from .bases import CanonicalModel, IdentifierKind


# ============================================================================
# Request
# ============================================================================

class MintRequest(BaseModel):
    """Body of ``POST /mint``.

    Exactly one of ``email`` or ``phone`` is expected; when both are present
    the email wins.

    Attributes:
        email: Email identifier, validated and lower-cased by the server.
        phone: Phone identifier in international format (``+`` and digits).
    """
    model_config = ConfigDict(extra="ignore")
    email: Optional[str] = Field(default=None, description="Email identifier")
    phone: Optional[str] = Field(default=None, description="E.164 phone identifier")


# ============================================================================
# Responses
# ============================================================================

class MintResult(CanonicalModel):
    """Successful mint outcome.

    Cached under ``mint:<identifier>`` and replayed verbatim for repeated
    requests, so it is treated as immutable once produced.

    Attributes:
        status: Always ``"success"`` for a produced result.
        identifier: Normalized identifier the wallet is addressed by.
        identifier_kind: EMAIL or PHONE.
        wallet_address: Address of the pregenerated wallet that received the NFT.
        operation_hash: Relay-assigned user operation hash.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: str = Field(default="success")
    identifier: str
    identifier_kind: IdentifierKind = Field(..., alias="identifierType")
    wallet_address: str = Field(..., alias="walletAddress")
    operation_hash: str = Field(..., alias="operationHash")


class ErrorResponse(CanonicalModel):
    """Error body returned for every non-2xx status.

    Attributes:
        error: Short, user-facing summary.
        retry_after: Seconds after which a retry is reasonable.
        details: Extra detail; redacted outside development mode.
        message: Raw exception message (development mode only).
        stack: Stack trace (development mode only).
    """
    error: str
    retry_after: Optional[float] = Field(default=None, alias="retryAfter")
    details: Optional[str] = None
    message: Optional[str] = None
    stack: Optional[str] = None

    def to_dict(self):
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class HealthEnvironment(CanonicalModel):
    """Presence of required contract configuration."""
    has_nft_address: bool = Field(..., alias="hasNFTAddress")
    has_nft_abi: bool = Field(..., alias="hasNFTAbi")


class HealthReport(CanonicalModel):
    """Result of ``GET /health``."""
    status: str = Field(default="healthy")
    custody: bool = False
    signer: bool = False
    relay: bool = False
    env: HealthEnvironment
