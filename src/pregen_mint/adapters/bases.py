"""
Abstract Base Classes for External Collaborators

Defines the interfaces the mint workflow consumes. The workflow treats each
collaborator as an opaque remote service that may fail on any call; concrete
implementations live next to this module.

Core Classes:
    - CustodialWalletService / CustodialSession: pregenerated wallets, user
      shares and raw signing
    - ShareStore: persistence of the user share per identifier
    - UserOperationRelay / SmartAccount: gas-sponsored account abstraction relay
"""

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, List, Optional, Union

from ..schemas.bases import IdentifierKind, WalletHandle, WalletType, SignatureResponse

SignableMessage = Union[str, bytes]


class CustodialSession(ABC):
    """
    One session with the custodial wallet service.

    A session holds at most the wallets that were created in it or
    rehydrated into it through ``set_user_share``.
    """

    @abstractmethod
    async def has_pregen_wallet(self, identifier: str, kind: IdentifierKind) -> bool:
        """Whether a pregenerated wallet already exists for the identifier."""
        pass

    @abstractmethod
    async def create_pregen_wallet(
        self,
        wallet_type: WalletType,
        identifier: str,
        kind: IdentifierKind,
    ) -> WalletHandle:
        """Create a pregenerated wallet addressed by the identifier."""
        pass

    @abstractmethod
    async def get_user_share(self) -> Optional[str]:
        """Export the user share of the wallets held by this session."""
        pass

    @abstractmethod
    async def set_user_share(self, share: str) -> None:
        """Rehydrate a previously exported user share into this session."""
        pass

    @abstractmethod
    async def get_wallets(self) -> Dict[str, WalletHandle]:
        """Wallets currently held by the session, keyed by wallet id."""
        pass

    @abstractmethod
    async def sign_message(self, wallet_id: str, message_b64: str) -> SignatureResponse:
        """
        Sign a base64-encoded 32 byte digest with the given wallet.

        Returns:
            SignatureResponse: hex signature (r || s || v) without ``0x``.
        """
        pass


class CustodialWalletService(ABC):
    """Factory for custodial sessions."""

    @abstractmethod
    async def open_session(self) -> CustodialSession:
        pass


class ShareStore(ABC):
    """
    Persistence of user shares, one record per identifier.

    "Not found" is reported as ``None`` / ``False``; only genuine storage
    failures raise.
    """

    @abstractmethod
    async def put(self, identifier: str, kind: IdentifierKind, share: str) -> None:
        pass

    @abstractmethod
    async def get(self, identifier: str) -> Optional[str]:
        pass

    @abstractmethod
    async def get_kind(self, identifier: str) -> Optional[IdentifierKind]:
        pass

    @abstractmethod
    async def exists(self, identifier: str) -> bool:
        pass


class SmartAccount(ABC):
    """Account-abstraction wallet owned by a custodial signer."""

    @property
    @abstractmethod
    def address(self) -> str:
        pass

    @abstractmethod
    async def send_user_operation(self, calls: List[Dict[str, str]]) -> str:
        """
        Submit ``calls`` (``{"target": ..., "data": ...}``) as one sponsored
        user operation.

        Returns:
            str: Relay-assigned user operation hash.
        """
        pass


class UserOperationRelay(ABC):
    """Connects owners to smart accounts on the relay."""

    @abstractmethod
    async def connect(
        self,
        owner: WalletHandle,
        sign_message: Callable[[SignableMessage], Awaitable[str]],
    ) -> SmartAccount:
        pass

    async def check(self) -> bool:
        """Whether the relay endpoint answers."""
        return True

    async def aclose(self) -> None:
        pass
