"""
Wallet provisioning for off-chain identifiers.

The first request for an identifier creates a pregenerated wallet in the
custodial service and persists its user share; every later request loads
that share and rehydrates it into a fresh session. Each remote step has its
own retry budget.
"""

import asyncio
from typing import Dict, Optional, Tuple

import structlog

from ..adapters.bases import CustodialSession, ShareStore
from ..schemas.bases import IdentifierKind, WalletHandle, WalletType
from .exceptions import WalletOperationError
from .retry import RetryExecutor

log = structlog.get_logger(__name__)


class WalletProvisioner:
    """Returns the one wallet addressed by an identifier.

    Concurrent first-time requests for the same identifier can both see "no
    wallet" and create two. ``serialize`` enables a per-identifier lock that
    prevents this within one process only.
    """

    def __init__(
        self,
        share_store: ShareStore,
        retry: Optional[RetryExecutor] = None,
        serialize: bool = False,
    ) -> None:
        self._share_store = share_store
        self._retry = retry or RetryExecutor()
        self._serialize = serialize
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    @property
    def share_store(self) -> ShareStore:
        return self._share_store

    async def provision(
        self,
        session: CustodialSession,
        identifier: str,
        kind: IdentifierKind,
    ) -> WalletHandle:
        if not identifier or not kind:
            log.error("invalid_identifier", identifier=identifier, kind=kind)
            raise WalletOperationError("Invalid identifier or identifier type")

        if not self._serialize:
            return await self._provision(session, identifier, kind)

        lock, users = self._locks.get(identifier, (asyncio.Lock(), 0))
        self._locks[identifier] = (lock, users + 1)
        try:
            async with lock:
                return await self._provision(session, identifier, kind)
        finally:
            lock, users = self._locks[identifier]
            if users <= 1:
                del self._locks[identifier]
            else:
                self._locks[identifier] = (lock, users - 1)

    async def _provision(
        self,
        session: CustodialSession,
        identifier: str,
        kind: IdentifierKind,
    ) -> WalletHandle:
        try:
            log.info("checking_wallet_exists", identifier=identifier, kind=kind.value)
            has_wallet = await self._retry.run(
                lambda: session.has_pregen_wallet(identifier, kind),
                label="has_pregen_wallet",
                identifier=identifier,
            )
            log.debug("wallet_existence_checked", identifier=identifier, has_wallet=has_wallet)

            if not has_wallet:
                return await self._create(session, identifier, kind)
            return await self._restore(session, identifier)
        except Exception as e:
            log.error(
                "wallet_operation_failed",
                identifier=identifier,
                kind=kind.value,
                error_name=type(e).__name__,
                error=str(e),
            )
            raise WalletOperationError("Wallet operation failed", original_error=e) from e

    async def _create(self, session: CustodialSession, identifier: str, kind: IdentifierKind) -> WalletHandle:
        log.info("creating_wallet", identifier=identifier)
        wallet = await self._retry.run(
            lambda: session.create_pregen_wallet(WalletType.EVM, identifier, kind),
            label="create_pregen_wallet",
            identifier=identifier,
        )
        log.debug("wallet_created", identifier=identifier, wallet_id=wallet.id)

        async def export_share() -> str:
            share = await session.get_user_share()
            if not share:
                log.error("user_share_missing", identifier=identifier)
                raise WalletOperationError("Failed to get user share")
            return share

        log.info("getting_user_share", identifier=identifier)
        share = await self._retry.run(export_share, label="get_user_share", identifier=identifier)

        log.info("storing_user_share", identifier=identifier)
        await self._retry.run(
            lambda: self._share_store.put(identifier, kind, share),
            label="store_user_share",
            identifier=identifier,
        )
        return wallet

    async def _restore(self, session: CustodialSession, identifier: str) -> WalletHandle:
        log.info("loading_user_share", identifier=identifier)
        share = await self._retry.run(
            lambda: self._share_store.get(identifier),
            label="load_user_share",
            identifier=identifier,
        )
        if not share:
            log.error("user_share_not_found", identifier=identifier)
            raise WalletOperationError("User share not found in database")

        log.info("setting_user_share", identifier=identifier)
        await self._retry.run(
            lambda: session.set_user_share(share),
            label="set_user_share",
            identifier=identifier,
        )

        wallets = await session.get_wallets()
        wallet = next(iter(wallets.values()), None) if wallets else None
        if wallet is None:
            log.error("wallet_missing_after_restore", identifier=identifier)
            raise WalletOperationError("No wallet found after setting user share")

        log.info("wallet_restored", identifier=identifier, wallet_address=wallet.address)
        return wallet
