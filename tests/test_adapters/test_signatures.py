"""
Test suite for the custodial SigningAdapter.
Tests: 1) Recovery id normalization 2) Signatures recover to the wallet 3) Malformed output
"""
import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from pregen_mint.adapters.evm.signatures import SigningAdapter, hash_message, normalize_recovery_id
from pregen_mint.engine.exceptions import SigningError, WalletOperationError
from pregen_mint.schemas.bases import IdentifierKind, SignatureResponse, WalletHandle, WalletType

from tests.fakes import CountingSession

R_S = "ab" * 64


@pytest.mark.parametrize("last,expected", [("00", "1b"), ("01", "1c"), ("1b", "1b"), ("1c", "1c")])
def test_normalize_recovery_id(last, expected):
    assert normalize_recovery_id(R_S + last) == R_S + expected


def test_hash_message_distinguishes_text_and_bytes():
    raw = bytes.fromhex("aa" * 32)
    assert hash_message(raw) != hash_message(raw.hex())
    assert len(hash_message("hello")) == 32


async def new_wallet(custody):
    session = await custody.open_session()
    wallet = await session.create_pregen_wallet(WalletType.EVM, "signer@example.com", IdentifierKind.EMAIL)
    return session, wallet


@pytest.mark.asyncio
@pytest.mark.parametrize("message", ["hello world", bytes.fromhex("5f" * 32)])
async def test_signature_recovers_to_wallet(custody, retry, message):
    session, wallet = await new_wallet(custody)
    adapter = SigningAdapter(session, retry=retry)

    signature = await adapter.sign(wallet, message)

    assert signature.startswith("0x")
    assert len(signature) == 2 + 130
    assert int(signature[-2:], 16) in (27, 28)
    if isinstance(message, bytes):
        signable = encode_defunct(primitive=message)
    else:
        signable = encode_defunct(text=message)
    assert Account.recover_message(signable, signature=signature) == wallet.address


@pytest.mark.asyncio
async def test_defaults_to_first_session_wallet(custody, retry):
    session, wallet = await new_wallet(custody)
    sign = SigningAdapter(session, retry=retry)

    signature = await sign.sign(None, "hi")
    assert Account.recover_message(encode_defunct(text="hi"), signature=signature) == wallet.address


@pytest.mark.asyncio
async def test_bound_signer(custody, retry):
    session, wallet = await new_wallet(custody)
    sign_message = SigningAdapter(session, retry=retry).signer_for(wallet)

    signature = await sign_message(b"\x01" * 32)
    assert Account.recover_message(encode_defunct(primitive=b"\x01" * 32), signature=signature) == wallet.address


@pytest.mark.asyncio
async def test_signing_is_retried(custody, retry, fake_sleep):
    inner, wallet = await new_wallet(custody)
    session = CountingSession(inner, fail={"sign_message": 2})

    await SigningAdapter(session, retry=retry).sign(wallet, "retry me")

    assert session.calls["sign_message"] == 3
    assert fake_sleep.delays == [1.0, 2.0]


class StaticSession:
    def __init__(self, signature):
        self.signature = signature

    async def sign_message(self, wallet_id, message_b64):
        return SignatureResponse(signature=self.signature)

    async def get_wallets(self):
        return {}


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", [None, "", "0x", "not-hex", "abc"])
async def test_malformed_signature_is_rejected(retry, raw):
    wallet = WalletHandle(id="w1", address="0x" + "00" * 20)
    with pytest.raises(SigningError) as exc:
        await SigningAdapter(StaticSession(raw), retry=retry).sign(wallet, "x")

    assert isinstance(exc.value, WalletOperationError)
    assert exc.value.message == "Message signing failed"


@pytest.mark.asyncio
async def test_prefixed_signature_is_accepted(retry):
    wallet = WalletHandle(id="w1", address="0x" + "00" * 20)
    signature = await SigningAdapter(StaticSession("0x" + R_S + "00"), retry=retry).sign(wallet, "x")
    assert signature == "0x" + R_S + "1b"


@pytest.mark.asyncio
async def test_no_wallet_available(retry):
    with pytest.raises(SigningError):
        await SigningAdapter(StaticSession(R_S + "1b"), retry=retry).sign(None, "x")
