"""
Base Schema Models for the Mint Service

This module defines the domain models shared by every layer: the identifier
kinds, the wallet handle returned by the custodial service, the persisted
share record and the circuit breaker snapshot.

Core Classes:
    - CanonicalModel: Pydantic base model with deterministic JSON serialization
    - IdentifierKind: EMAIL / PHONE
    - WalletType: Account type requested from the custodial service
    - WalletHandle: Address-bearing wallet reference
    - WalletShareRecord: Persisted user share for one identifier
    - UserSharePayload: Wallet entries sealed inside an exported user share
    - SignatureResponse: Raw signing result from the custodial service
    - CircuitBreakerState: Read-only snapshot of the breaker

Dependencies:
    - pydantic: For data validation and serialization
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, ConfigDict, Field


class CanonicalModel(BaseModel):
    """
    Pydantic base model with canonical JSON serialization.

    Keys are sorted and whitespace is removed so the same model always
    produces the same bytes; the custodial service MACs these bytes.
    Field aliases are used on the wire; Python code may populate fields by
    either name.

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        MyModel(name="test", value=123).to_canonical_json()
        # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string.

        Returns:
            str: JSON string with sorted keys and no extra whitespace.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation (aliases applied, JSON-compatible values)."""
        return self.model_dump(mode="json", by_alias=True)


class IdentifierKind(str, Enum):
    """Which off-chain identifier addresses a pregenerated wallet."""
    EMAIL = "EMAIL"
    PHONE = "PHONE"


class WalletType(str, Enum):
    """Account type requested when creating a pregenerated wallet."""
    EVM = "EVM"


class WalletHandle(CanonicalModel):
    """
    Address-bearing reference to a custodial wallet.

    Reconstructed per request from a freshly created wallet or from a
    share-rehydrated session; never persisted directly.
    """
    id: str = Field(..., description="Wallet id inside the custodial service")
    address: str = Field(..., description="0x-prefixed EVM address")
    wallet_type: WalletType = Field(default=WalletType.EVM, alias="type")


class WalletShareRecord(CanonicalModel):
    """
    Persisted user share for one identifier.

    Created exactly once per identifier and never mutated afterwards.
    """
    identifier: str
    identifier_kind: IdentifierKind = Field(..., alias="identifier_type")
    user_share: str = Field(..., description="Opaque user key share")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ShareEntry(CanonicalModel):
    """One wallet's half of the key inside a user share."""
    id: str
    address: str
    share: str = Field(..., description="Hex encoded user key share")


class UserSharePayload(CanonicalModel):
    """Body of an exported user share; HMAC-sealed by the custodial service."""
    wallets: List[ShareEntry] = Field(default_factory=list)


class SignatureResponse(CanonicalModel):
    """
    Raw result of a custodial signing request.

    ``signature`` is a hex string without the ``0x`` marker. It is empty when
    the service deferred signing (for example pending approval).
    """
    signature: Optional[str] = None
    pending_transaction_id: Optional[str] = Field(default=None, alias="pendingTransactionId")


class CircuitBreakerState(CanonicalModel):
    """Snapshot of the process-wide circuit breaker."""
    failure_count: int = Field(..., alias="failureCount")
    last_failure: float = Field(..., alias="lastFailureTimestamp")
    is_open: bool = Field(..., alias="isOpen")
