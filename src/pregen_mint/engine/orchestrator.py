"""
End-to-end mint workflow.

One mint attempt opens a custodial session, provisions the identifier's
wallet, binds a signer to it, connects the wallet's smart account on the
relay and submits ``mintTo(wallet)``. The whole attempt is retried by an
outer executor; the remote calls inside it keep their own budgets, so the
worst case is ``max_retries ** 2`` calls per step.
"""

from typing import Optional

import structlog

from ..adapters.bases import CustodialSession, CustodialWalletService, UserOperationRelay
from ..adapters.evm.signatures import SigningAdapter
from ..adapters.evm.submitter import TransactionSubmitter
from ..schemas.bases import IdentifierKind
from ..schemas.https import HealthEnvironment, HealthReport, MintResult
from .exceptions import ServiceInitError
from .provisioning import WalletProvisioner
from .retry import RetryExecutor

log = structlog.get_logger(__name__)


class MintOrchestrator:
    """Composes provisioning, signing and submission into one mint."""

    def __init__(
        self,
        custody: CustodialWalletService,
        provisioner: WalletProvisioner,
        relay: UserOperationRelay,
        submitter: TransactionSubmitter,
        retry: Optional[RetryExecutor] = None,
        call_retry: Optional[RetryExecutor] = None,
    ) -> None:
        """
        Args:
            custody: Custodial wallet service sessions are opened on.
            provisioner: Resolves identifiers to wallets.
            relay: Account abstraction relay.
            submitter: Encodes and sends the mint call.
            retry: Executor for whole mint attempts.
            call_retry: Executor for the individual calls made here
                        (session opening, signing, relay connection).
        """
        self.custody = custody
        self.provisioner = provisioner
        self.relay = relay
        self.submitter = submitter
        self._retry = retry or RetryExecutor()
        self._call_retry = call_retry or RetryExecutor()

    async def initialize_session(self) -> CustodialSession:
        """
        Open a custodial session and verify it by listing its wallets.

        Raises:
            ServiceInitError: If the session could not be established.
        """
        async def open_and_verify() -> CustodialSession:
            session = await self.custody.open_session()
            await session.get_wallets()
            return session

        try:
            session = await self._call_retry.run(open_and_verify, label="open_custodial_session")
        except Exception as e:
            log.error("custodial_session_failed", error_name=type(e).__name__, error=str(e))
            raise ServiceInitError("Failed to initialize custodial wallet service", original_error=e) from e
        log.debug("custodial_session_opened")
        return session

    async def _attempt(self, identifier: str, kind: IdentifierKind) -> MintResult:
        session = await self.initialize_session()
        wallet = await self.provisioner.provision(session, identifier, kind)

        signer = SigningAdapter(session, retry=self._call_retry)
        account = await self._call_retry.run(
            lambda: self.relay.connect(wallet, signer.signer_for(wallet)),
            label="connect_smart_account",
            wallet_address=wallet.address,
        )
        log.info("smart_account_connected", identifier=identifier, account=account.address)

        operation_hash = await self.submitter.submit(account, wallet)
        return MintResult(
            identifier=identifier,
            identifier_kind=kind,
            wallet_address=wallet.address,
            operation_hash=operation_hash,
        )

    async def mint(self, identifier: str, kind: IdentifierKind) -> MintResult:
        """
        Mint one NFT to the wallet addressed by ``identifier``.

        Returns:
            MintResult: Wallet address and relay operation hash.

        Raises:
            MintServiceError: The error of the last failed attempt.
        """
        log.info("mint_started", identifier=identifier, kind=kind.value)
        result = await self._retry.run(
            lambda: self._attempt(identifier, kind),
            label="mint",
            identifier=identifier,
        )
        log.info(
            "mint_succeeded",
            identifier=identifier,
            wallet_address=result.wallet_address,
            operation_hash=result.operation_hash,
        )
        return result

    async def check_health(self) -> HealthReport:
        """
        Initialize every downstream client once.

        Raises:
            Exception: Whatever the first unreachable collaborator raised.
        """
        session = await self.initialize_session()
        SigningAdapter(session, retry=self._call_retry)
        relay_ok = await self.relay.check()
        return HealthReport(
            custody=True,
            signer=True,
            relay=relay_ok,
            env=HealthEnvironment(
                has_nft_address=bool(self.submitter.contract_address),
                has_nft_abi=bool(self.submitter.abi),
            ),
        )
