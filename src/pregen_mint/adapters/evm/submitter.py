"""NFT mint submission as a sponsored user operation."""

from typing import Any, Dict, List, Optional

import structlog
from web3 import Web3

from ..bases import SmartAccount
from ...engine.exceptions import WalletOperationError
from ...engine.retry import RetryExecutor
from ...schemas.bases import WalletHandle
from .abis import get_nft_abi
from .constants import NFT_CONTRACT_ADDRESS

log = structlog.get_logger(__name__)

_w3 = Web3()


class TransactionSubmitter:
    """Encodes ``mintTo(wallet)`` and relays it through a smart account.

    Encoding is pure; only the relay call is retried, as one unit.
    """

    def __init__(
        self,
        contract_address: str = NFT_CONTRACT_ADDRESS,
        abi: Optional[List[Dict[str, Any]]] = None,
        retry: Optional[RetryExecutor] = None,
    ) -> None:
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.abi = abi or get_nft_abi()
        self._contract = _w3.eth.contract(address=self.contract_address, abi=self.abi)
        self._retry = retry or RetryExecutor()

    def build_mint_call(self, wallet: WalletHandle) -> Dict[str, str]:
        data = self._contract.encode_abi("mintTo", args=[Web3.to_checksum_address(wallet.address)])
        return {"target": self.contract_address, "data": data}

    async def submit(self, account: SmartAccount, wallet: WalletHandle) -> str:
        """
        Mint to ``wallet`` through ``account``.

        Returns:
            str: Relay-assigned user operation hash.

        Raises:
            WalletOperationError: If the relay failed after retries.
        """
        call = self.build_mint_call(wallet)
        try:
            return await self._retry.run(
                lambda: account.send_user_operation([call]),
                label="send_user_operation",
                wallet_address=wallet.address,
            )
        except Exception as e:
            log.error("user_operation_failed", wallet_address=wallet.address, error=str(e))
            raise WalletOperationError("Failed to submit user operation", original_error=e) from e
