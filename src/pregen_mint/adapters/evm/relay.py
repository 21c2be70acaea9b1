"""
ERC-4337 Relay Client

Submits gas-sponsored user operations for Modular Account smart accounts
through an Alchemy endpoint, which serves node, bundler and gas manager
methods on the same JSON-RPC URL.

Flow for one user operation:
    1. Derive the counterfactual account address from the factory
    2. Build callData (``execute`` / ``executeBatch``) and initCode
    3. Read the account nonce from the EntryPoint
    4. Request gas limits and paymasterAndData from the gas manager policy
    5. Sign the v0.6 userOpHash with the owner (EIP-191 over raw bytes)
    6. ``eth_sendUserOperation``

Dependencies:
    - httpx: JSON-RPC transport
    - web3 / eth_abi / eth_utils: ABI encoding and hashing
"""

import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
import structlog
from eth_abi import decode, encode
from eth_utils import keccak, to_bytes
from web3 import Web3

from ..bases import SignableMessage, SmartAccount, UserOperationRelay
from ...engine.exceptions import ConfigurationError, RelayError
from ...schemas.bases import WalletHandle
from .abis import get_account_execute_abi, get_account_factory_abi, get_entry_point_abi
from .constants import (
    DEFAULT_ACCOUNT_SALT,
    DEFAULT_TIMEOUT,
    DUMMY_SIGNATURE,
    ENTRY_POINT_ADDRESS,
    MODULAR_ACCOUNT_FACTORY_ADDRESS,
    get_chain_config,
)

log = structlog.get_logger(__name__)

_w3 = Web3()

_GAS_FIELDS = (
    "paymasterAndData",
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
)


def _int_from_quantity(value: Any) -> int:
    if value in (None, ""):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("0x"):
            return int(text, 16)
        return int(text)
    raise ValueError(f"Unsupported quantity: {value!r}")


def _hex_bytes(value: Optional[str]) -> bytes:
    if not value or value == "0x":
        return b""
    return to_bytes(hexstr=value)


def get_user_operation_hash(user_op: Dict[str, Any], entry_point: str, chain_id: int) -> bytes:
    """
    Compute the EntryPoint v0.6 ``getUserOpHash`` locally.

    Returns:
        bytes: keccak256(abi.encode(keccak256(pack(userOp)), entryPoint, chainId))
    """
    packed = encode(
        ["address", "uint256", "bytes32", "bytes32", "uint256", "uint256", "uint256", "uint256", "uint256", "bytes32"],
        [
            user_op["sender"],
            _int_from_quantity(user_op["nonce"]),
            keccak(_hex_bytes(user_op.get("initCode"))),
            keccak(_hex_bytes(user_op.get("callData"))),
            _int_from_quantity(user_op.get("callGasLimit")),
            _int_from_quantity(user_op.get("verificationGasLimit")),
            _int_from_quantity(user_op.get("preVerificationGas")),
            _int_from_quantity(user_op.get("maxFeePerGas")),
            _int_from_quantity(user_op.get("maxPriorityFeePerGas")),
            keccak(_hex_bytes(user_op.get("paymasterAndData"))),
        ],
    )
    return keccak(encode(["bytes32", "address", "uint256"], [keccak(packed), entry_point, chain_id]))


class JsonRpcClient:
    """Minimal async JSON-RPC 2.0 client."""

    def __init__(
        self,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout, headers=headers or {})

    async def call(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": int(time.time() * 1000), "method": method, "params": params}
        try:
            response = await self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise RelayError(f"{method} request failed", original_error=e) from e
        if response.status_code >= 400:
            raise RelayError(f"{method} responded with HTTP {response.status_code}", code=response.status_code)
        data = response.json()
        if data.get("error"):
            error = data["error"] or {}
            raise RelayError(str(error.get("message") or f"{method} failed"), code=error.get("code"))
        return data.get("result")

    async def aclose(self) -> None:
        await self._client.aclose()


class ModularSmartAccount(SmartAccount):
    """Modular Account owned by a single custodial wallet."""

    def __init__(
        self,
        relay: "AlchemyAccountRelay",
        owner: WalletHandle,
        address: str,
        sign_message: Callable[[SignableMessage], Awaitable[str]],
    ) -> None:
        self._relay = relay
        self._owner = owner
        self._address = address
        self._sign_message = sign_message

    @property
    def address(self) -> str:
        return self._address

    @property
    def owner(self) -> WalletHandle:
        return self._owner

    def encode_calls(self, calls: List[Dict[str, str]]) -> str:
        account = _w3.eth.contract(address=self._address, abi=get_account_execute_abi())
        if len(calls) == 1:
            call = calls[0]
            return account.encode_abi(
                "execute",
                args=[Web3.to_checksum_address(call["target"]), int(call.get("value", 0)), _hex_bytes(call["data"])],
            )
        return account.encode_abi(
            "executeBatch",
            args=[[
                (Web3.to_checksum_address(c["target"]), int(c.get("value", 0)), _hex_bytes(c["data"]))
                for c in calls
            ]],
        )

    async def send_user_operation(self, calls: List[Dict[str, str]]) -> str:
        if not calls:
            raise ValueError("At least one call is required")

        relay = self._relay
        user_op: Dict[str, Any] = {
            "sender": self._address,
            "nonce": hex(await relay.get_nonce(self._address)),
            "initCode": await relay.get_init_code(self._address, self._owner.address),
            "callData": self.encode_calls(calls),
            "signature": DUMMY_SIGNATURE,
        }

        sponsorship = await relay.request_sponsorship(user_op)
        for field in _GAS_FIELDS:
            if field in sponsorship:
                user_op[field] = sponsorship[field]

        user_op_hash = get_user_operation_hash(user_op, relay.entry_point, relay.chain_id)
        user_op["signature"] = await self._sign_message(user_op_hash)

        operation_hash = await relay.send(user_op)
        log.info("user_operation_sent", sender=self._address, operation_hash=operation_hash)
        return operation_hash


class AlchemyAccountRelay(UserOperationRelay):
    """Relay backed by an Alchemy RPC URL and a gas manager policy."""

    def __init__(
        self,
        rpc_url: Optional[str],
        *,
        policy_id: Optional[str],
        entry_point: str = ENTRY_POINT_ADDRESS,
        factory_address: str = MODULAR_ACCOUNT_FACTORY_ADDRESS,
        chain_id: Optional[int] = None,
        salt: int = DEFAULT_ACCOUNT_SALT,
        rpc: Optional[JsonRpcClient] = None,
    ) -> None:
        if rpc is None and not rpc_url:
            raise ConfigurationError("Missing Alchemy RPC URL or API key")
        if not policy_id:
            raise ConfigurationError("Missing Alchemy gas policy id")
        self._rpc = rpc or JsonRpcClient(rpc_url)
        self.policy_id = policy_id
        self.entry_point = Web3.to_checksum_address(entry_point)
        self.factory_address = Web3.to_checksum_address(factory_address)
        self.chain_id = chain_id if chain_id is not None else get_chain_config().chain_id
        self.salt = salt
        self._factory = _w3.eth.contract(address=self.factory_address, abi=get_account_factory_abi())
        self._entry_point = _w3.eth.contract(address=self.entry_point, abi=get_entry_point_abi())

    async def connect(
        self,
        owner: WalletHandle,
        sign_message: Callable[[SignableMessage], Awaitable[str]],
    ) -> ModularSmartAccount:
        owner_address = Web3.to_checksum_address(owner.address)
        data = self._factory.encode_abi("getAddress", args=[self.salt, [owner_address]])
        result = await self._rpc.call("eth_call", [{"to": self.factory_address, "data": data}, "latest"])
        (account_address,) = decode(["address"], _hex_bytes(result))
        account_address = Web3.to_checksum_address(account_address)
        log.debug("smart_account_resolved", owner=owner_address, account=account_address)
        return ModularSmartAccount(self, owner, account_address, sign_message)

    async def get_init_code(self, account_address: str, owner_address: str) -> str:
        """Factory deployment code, or ``0x`` once the account is deployed."""
        code = await self._rpc.call("eth_getCode", [account_address, "latest"])
        if code and code not in ("0x", "0x0"):
            return "0x"
        create = self._factory.encode_abi(
            "createAccount", args=[self.salt, [Web3.to_checksum_address(owner_address)]]
        )
        return self.factory_address + create[2:]

    async def get_nonce(self, account_address: str) -> int:
        data = self._entry_point.encode_abi("getNonce", args=[account_address, 0])
        result = await self._rpc.call("eth_call", [{"to": self.entry_point, "data": data}, "latest"])
        return _int_from_quantity(result) if result and result != "0x" else 0

    async def request_sponsorship(self, user_op: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._rpc.call(
            "alchemy_requestGasAndPaymasterAndData",
            [{
                "policyId": self.policy_id,
                "entryPoint": self.entry_point,
                "dummySignature": DUMMY_SIGNATURE,
                "userOperation": {
                    "sender": user_op["sender"],
                    "nonce": user_op["nonce"],
                    "initCode": user_op["initCode"],
                    "callData": user_op["callData"],
                },
            }],
        )
        if not isinstance(result, dict) or not result.get("paymasterAndData"):
            raise RelayError("Gas manager declined to sponsor the user operation")
        return result

    async def send(self, user_op: Dict[str, Any]) -> str:
        result = await self._rpc.call("eth_sendUserOperation", [user_op, self.entry_point])
        if not isinstance(result, str):
            raise RelayError("Bundler returned an invalid userOp hash")
        return result

    async def check(self) -> bool:
        chain_id = await self._rpc.call("eth_chainId", [])
        return _int_from_quantity(chain_id) == self.chain_id

    async def aclose(self) -> None:
        await self._rpc.aclose()
