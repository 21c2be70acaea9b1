"""
Mint Service Test Doubles

Key Components:
    - FakeSleep / FakeClock: deterministic time for retry, breaker and cache tests
    - FakeRelay / FakeSmartAccount: in-memory account abstraction relay that
      signs the user operation through the real signer callback
    - CountingSession: custodial session wrapper counting and failing calls

Usage:
    from tests.fakes import FakeRelay, CountingSession

    relay = FakeRelay(send_failures=2)
    session = CountingSession(await custody.open_session(), fail={"get_wallets": 1})
"""

from typing import Awaitable, Callable, Dict, List, Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak

from pregen_mint.adapters.bases import SignableMessage, SmartAccount, UserOperationRelay
from pregen_mint.schemas.bases import WalletHandle

MOCK_CUSTODY_SECRET = "test-custody-secret"
MOCK_OPERATION_HASH_PREFIX = "0x"


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSmartAccount(SmartAccount):
    def __init__(self, relay: "FakeRelay", owner: WalletHandle, sign_message: Callable[[SignableMessage], Awaitable[str]]):
        self._relay = relay
        self._owner = owner
        self._sign_message = sign_message

    @property
    def address(self) -> str:
        return "0x" + keccak(text=self._owner.address).hex()[-40:]

    async def send_user_operation(self, calls: List[Dict[str, str]]) -> str:
        relay = self._relay
        relay.sent_calls.append(calls)
        if relay.send_failures > 0:
            relay.send_failures -= 1
            raise RuntimeError("bundler unavailable")

        user_op_hash = keccak(text=f"{self._owner.address}:{len(relay.sent_calls)}")
        signature = await self._sign_message(user_op_hash)
        recovered = Account.recover_message(encode_defunct(primitive=user_op_hash), signature=signature)
        relay.signatures.append((self._owner.address, recovered, signature))
        return MOCK_OPERATION_HASH_PREFIX + user_op_hash.hex()


class FakeRelay(UserOperationRelay):
    """Relay double; ``send_failures`` makes the next sends fail."""

    def __init__(self, send_failures: int = 0, healthy: bool = True) -> None:
        self.send_failures = send_failures
        self.healthy = healthy
        self.connects: List[str] = []
        self.sent_calls: List[List[Dict[str, str]]] = []
        self.signatures: List[tuple] = []
        self.closed = False

    async def connect(self, owner: WalletHandle, sign_message) -> FakeSmartAccount:
        self.connects.append(owner.address)
        return FakeSmartAccount(self, owner, sign_message)

    async def check(self) -> bool:
        return self.healthy

    async def aclose(self) -> None:
        self.closed = True


class CountingSession:
    """Wraps a custodial session and counts calls per method."""

    def __init__(self, inner, fail: Optional[Dict[str, int]] = None) -> None:
        self._inner = inner
        self.calls: Dict[str, int] = {}
        self._fail = dict(fail or {})

    def __getattr__(self, name):
        target = getattr(self._inner, name)
        if not callable(target):
            return target

        async def wrapper(*args, **kwargs):
            self.calls[name] = self.calls.get(name, 0) + 1
            if self._fail.get(name, 0) > 0:
                self._fail[name] -= 1
                raise RuntimeError(f"{name} unavailable")
            return await target(*args, **kwargs)
        return wrapper
