"""
EVM Signing Through the Custodial Service

The custodial service only signs raw 32 byte digests. ``SigningAdapter``
performs the EIP-191 hashing locally, asks the service for a raw signature
and converts the result to the chain wire format expected by smart account
validators:

    0x || r (32 bytes) || s (32 bytes) || v (1 byte, 27 or 28)

Exported helpers
----------------
hash_message
    EIP-191 ``personal_sign`` digest of a text or raw-bytes message.

normalize_recovery_id
    Shift a trailing recovery id of 0/1 to the legacy 27/28 convention.
"""

import base64
import re
from typing import Awaitable, Callable, Optional

import structlog
from eth_account.messages import defunct_hash_message

from ..bases import CustodialSession, SignableMessage
from ...engine.exceptions import SigningError
from ...engine.retry import RetryExecutor
from ...schemas.bases import WalletHandle

log = structlog.get_logger(__name__)

_HEX_SIGNATURE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")

#: Recovery ids below this value are raw (0/1) and need the legacy offset.
LEGACY_V_OFFSET = 27


def hash_message(message: SignableMessage) -> bytes:
    """
    Hash a message the way ``personal_sign`` does.

    Args:
        message: ``str`` is signed as UTF-8 text, ``bytes`` as raw data
                 (for example a user operation hash).

    Returns:
        bytes: 32 byte keccak digest of the EIP-191 envelope.
    """
    if isinstance(message, (bytes, bytearray)):
        return bytes(defunct_hash_message(primitive=bytes(message)))
    return bytes(defunct_hash_message(text=message))


def normalize_recovery_id(signature: str) -> str:
    """
    Enforce the legacy Ethereum recovery id on a hex signature.

    Args:
        signature: Hex signature without ``0x``.

    Returns:
        str: The same signature with a trailing byte of 27 or above.
    """
    last_byte = int(signature[-2:], 16)
    if last_byte < LEGACY_V_OFFSET:
        signature = signature[:-2] + format(last_byte + LEGACY_V_OFFSET, "02x")
    return signature


class SigningAdapter:
    """Produces wire-format ECDSA signatures via a custodial session."""

    def __init__(self, session: CustodialSession, retry: Optional[RetryExecutor] = None) -> None:
        self._session = session
        self._retry = retry or RetryExecutor()

    async def _default_wallet(self) -> WalletHandle:
        wallets = await self._session.get_wallets()
        if not wallets:
            raise SigningError("No wallet available for signing")
        return next(iter(wallets.values()))

    async def sign(self, wallet: Optional[WalletHandle], message: SignableMessage) -> str:
        """
        Sign ``message`` with ``wallet`` (or the session's first wallet).

        Returns:
            str: ``0x``-prefixed 65 byte signature with v in {27, 28}.

        Raises:
            SigningError: If the signer is unavailable or its output is malformed.
        """
        try:
            if wallet is None:
                wallet = await self._default_wallet()

            digest = hash_message(message)
            digest_b64 = base64.b64encode(digest).decode("ascii")

            response = await self._retry.run(
                lambda: self._session.sign_message(wallet.id, digest_b64),
                label="sign_message",
                wallet_id=wallet.id,
            )

            signature = response.signature if response is not None else None
            if not signature or not isinstance(signature, str):
                raise SigningError("Invalid signature format received")

            if signature.startswith("0x"):
                signature = signature[2:]
            if not _HEX_SIGNATURE.match(signature):
                raise SigningError("Invalid signature format received")

            return "0x" + normalize_recovery_id(signature)
        except Exception as e:
            log.error("message_signing_failed", wallet_id=getattr(wallet, "id", None), error=str(e))
            raise SigningError("Message signing failed", original_error=e) from e

    def signer_for(self, wallet: WalletHandle) -> Callable[[SignableMessage], Awaitable[str]]:
        """Bind the adapter to one wallet, as a smart account owner signer."""
        async def sign_message(message: SignableMessage) -> str:
            return await self.sign(wallet, message)
        return sign_message
