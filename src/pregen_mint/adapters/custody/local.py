"""
In-Process Custodial Wallet Service

A 2-of-2 key-split custodian. Each pregenerated wallet key is split into a
service share, kept by this service, and a user share, exported to the
caller for external persistence. Neither share alone can sign; a session
recombines them after ``set_user_share``.

The service share of a wallet is derived from the service secret and the
wallet id, so a restarted service with the same secret can still open user
shares it exported earlier. Which identifiers already own a wallet is read
from the ``registry`` share store when one is given.

The exported user share is an opaque, HMAC-authenticated token:

    base64url(canonical_json(UserSharePayload)) "." base64url(hmac)
"""

import base64
import hashlib
import hmac
import uuid
from typing import Dict, List, Optional, Set, Tuple

import structlog
from eth_account import Account

from ..bases import CustodialSession, CustodialWalletService, ShareStore
from ...engine.exceptions import ConfigurationError
from ...schemas.bases import (
    IdentifierKind,
    ShareEntry,
    SignatureResponse,
    UserSharePayload,
    WalletHandle,
    WalletType,
)

log = structlog.get_logger(__name__)

KEY_LENGTH = 32


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _xor(left: bytes, right: bytes) -> bytes:
    return bytes(a ^ b for a, b in zip(left, right))


class LocalCustodialService(CustodialWalletService):
    """Derives service shares and tracks which identifiers own a wallet."""

    def __init__(self, secret: Optional[str], registry: Optional[ShareStore] = None) -> None:
        if not secret:
            raise ConfigurationError("Missing custodial service secret")
        self._secret = secret.encode("utf-8")
        self._registry = registry
        # wallets created by this process, before their share is persisted
        self._created: Set[Tuple[IdentifierKind, str]] = set()

    async def open_session(self) -> "LocalCustodialSession":
        return LocalCustodialSession(self)

    def service_share(self, wallet_id: str) -> bytes:
        return hmac.new(
            key=self._secret, msg=b"service-share:" + wallet_id.encode(), digestmod=hashlib.sha256
        ).digest()

    async def is_registered(self, identifier: str, kind: IdentifierKind) -> bool:
        if (kind, identifier) in self._created:
            return True
        if self._registry is None:
            return False
        return await self._registry.get_kind(identifier) is kind

    def _sign_token(self, payload_b64: str) -> str:
        digest = hmac.new(key=self._secret, msg=payload_b64.encode(), digestmod=hashlib.sha256).digest()
        return _b64encode(digest)

    def seal_user_share(self, entries: List[ShareEntry]) -> str:
        payload_b64 = _b64encode(UserSharePayload(wallets=entries).to_canonical_json().encode())
        return f"{payload_b64}.{self._sign_token(payload_b64)}"

    def open_user_share(self, token: str) -> List[ShareEntry]:
        try:
            payload_b64, signature_b64 = token.split(".")
        except ValueError:
            raise ValueError("Invalid user share format")
        if not hmac.compare_digest(self._sign_token(payload_b64), signature_b64):
            raise ValueError("User share signature verification failed")
        return UserSharePayload.model_validate_json(_b64decode(payload_b64)).wallets


class LocalCustodialSession(CustodialSession):
    """Session holding the wallets created in or rehydrated into it."""

    def __init__(self, service: LocalCustodialService) -> None:
        self._service = service
        self._wallets: Dict[str, WalletHandle] = {}
        self._user_shares: Dict[str, bytes] = {}

    async def has_pregen_wallet(self, identifier: str, kind: IdentifierKind) -> bool:
        return await self._service.is_registered(identifier, kind)

    async def create_pregen_wallet(
        self,
        wallet_type: WalletType,
        identifier: str,
        kind: IdentifierKind,
    ) -> WalletHandle:
        if wallet_type != WalletType.EVM:
            raise ValueError(f"Unsupported wallet type: {wallet_type}")
        if await self._service.is_registered(identifier, kind):
            raise ValueError("Pregenerated wallet already exists for identifier")

        account = Account.create()
        key = bytes(account.key)
        wallet_id = str(uuid.uuid4())
        service_share = self._service.service_share(wallet_id)
        self._service._created.add((kind, identifier))

        wallet = WalletHandle(id=wallet_id, address=account.address, wallet_type=wallet_type)
        self._wallets[wallet_id] = wallet
        self._user_shares[wallet_id] = _xor(key, service_share)
        log.debug("custodial_wallet_created", wallet_id=wallet_id, kind=kind.value)
        return wallet

    async def get_user_share(self) -> Optional[str]:
        if not self._user_shares:
            return None
        entries = [
            ShareEntry(id=wallet_id, address=self._wallets[wallet_id].address, share=share.hex())
            for wallet_id, share in self._user_shares.items()
        ]
        return self._service.seal_user_share(entries)

    async def set_user_share(self, share: str) -> None:
        for entry in self._service.open_user_share(share):
            wallet_id = entry.id
            user_share = bytes.fromhex(entry.share)
            if len(user_share) != KEY_LENGTH:
                raise ValueError(f"Malformed share for wallet: {wallet_id}")
            account = Account.from_key(_xor(user_share, self._service.service_share(wallet_id)))
            if account.address != entry.address:
                raise ValueError("User share does not match wallet")
            self._wallets[wallet_id] = WalletHandle(id=wallet_id, address=account.address)
            self._user_shares[wallet_id] = user_share

    async def get_wallets(self) -> Dict[str, WalletHandle]:
        return dict(self._wallets)

    async def sign_message(self, wallet_id: str, message_b64: str) -> SignatureResponse:
        user_share = self._user_shares.get(wallet_id)
        if user_share is None:
            raise ValueError(f"Wallet not available in session: {wallet_id}")
        digest = base64.b64decode(message_b64)
        if len(digest) != KEY_LENGTH:
            raise ValueError("Only 32 byte digests can be signed")

        key = _xor(user_share, self._service.service_share(wallet_id))
        signed = Account.unsafe_sign_hash(digest, key)
        # raw recovery id (0/1), as threshold signers return it
        recovery_id = signed.v - 27
        signature = signed.r.to_bytes(32, "big") + signed.s.to_bytes(32, "big") + bytes([recovery_id])
        return SignatureResponse(signature=signature.hex())
