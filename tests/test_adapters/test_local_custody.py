"""
Test suite for the in-process custodial wallet service.
Tests: 1) Pregenerated wallet lifecycle 2) User share round trip 3) Tampering
"""
import base64

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct

from pregen_mint.adapters.custody.local import LocalCustodialService
from pregen_mint.adapters.evm.signatures import SigningAdapter
from pregen_mint.engine.exceptions import ConfigurationError
from pregen_mint.schemas.bases import IdentifierKind, WalletType

from tests.fakes import MOCK_CUSTODY_SECRET

PHONE = "+5511999999999"
DIGEST_B64 = base64.b64encode(b"\xaa" * 32).decode()


def test_requires_secret():
    with pytest.raises(ConfigurationError):
        LocalCustodialService(None)


@pytest.mark.asyncio
async def test_pregen_wallet_is_registered_per_identifier_and_kind(custody):
    session = await custody.open_session()
    assert await session.has_pregen_wallet(PHONE, IdentifierKind.PHONE) is False

    await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)

    other = await custody.open_session()
    assert await other.has_pregen_wallet(PHONE, IdentifierKind.PHONE) is True
    assert await other.has_pregen_wallet(PHONE, IdentifierKind.EMAIL) is False

    with pytest.raises(ValueError):
        await other.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)


@pytest.mark.asyncio
async def test_user_share_rehydrates_wallet_in_new_session(custody):
    session = await custody.open_session()
    wallet = await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)
    share = await session.get_user_share()

    restored = await custody.open_session()
    assert await restored.get_wallets() == {}
    await restored.set_user_share(share)

    wallets = await restored.get_wallets()
    assert list(wallets) == [wallet.id]
    assert wallets[wallet.id].address == wallet.address


@pytest.mark.asyncio
async def test_empty_session_has_no_share(custody):
    session = await custody.open_session()
    assert await session.get_user_share() is None


@pytest.mark.asyncio
async def test_tampered_share_is_rejected(custody):
    session = await custody.open_session()
    await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)
    payload, mac = (await session.get_user_share()).split(".")

    with pytest.raises(ValueError, match="verification failed"):
        await (await custody.open_session()).set_user_share(payload[:-2] + "AA." + mac)
    with pytest.raises(ValueError, match="format"):
        await (await custody.open_session()).set_user_share("no-separator")


@pytest.mark.asyncio
async def test_share_from_another_service_is_rejected(custody):
    session = await custody.open_session()
    await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)
    share = await session.get_user_share()

    other_service = LocalCustodialService("another-secret")
    with pytest.raises(ValueError):
        await (await other_service.open_session()).set_user_share(share)


@pytest.mark.asyncio
async def test_sign_requires_digest_and_known_wallet(custody):
    session = await custody.open_session()
    wallet = await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)

    response = await session.sign_message(wallet.id, DIGEST_B64)
    assert len(response.signature) == 130
    assert int(response.signature[-2:], 16) in (0, 1)

    with pytest.raises(ValueError, match="32 byte"):
        await session.sign_message(wallet.id, "aGVsbG8=")
    with pytest.raises(ValueError, match="not available"):
        await (await custody.open_session()).sign_message(wallet.id, DIGEST_B64)


@pytest.mark.asyncio
async def test_share_payload_is_canonical_json(custody):
    session = await custody.open_session()
    wallet = await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)
    payload_b64 = (await session.get_user_share()).split(".")[0]

    payload = base64.urlsafe_b64decode(payload_b64 + "=" * (-len(payload_b64) % 4)).decode()
    assert payload.startswith('{"wallets":[{"address":"' + wallet.address + '","id":"' + wallet.id + '"')
    assert " " not in payload


@pytest.mark.asyncio
async def test_restarted_service_opens_earlier_shares(custody, share_store, retry):
    session = await custody.open_session()
    wallet = await session.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)
    await share_store.put(PHONE, IdentifierKind.PHONE, await session.get_user_share())

    restarted = LocalCustodialService(MOCK_CUSTODY_SECRET, registry=share_store)
    fresh = await restarted.open_session()
    assert await fresh.has_pregen_wallet(PHONE, IdentifierKind.PHONE) is True
    assert await fresh.has_pregen_wallet(PHONE, IdentifierKind.EMAIL) is False
    with pytest.raises(ValueError, match="already exists"):
        await fresh.create_pregen_wallet(WalletType.EVM, PHONE, IdentifierKind.PHONE)

    await fresh.set_user_share(await share_store.get(PHONE))
    assert (await fresh.get_wallets())[wallet.id].address == wallet.address

    signature = await SigningAdapter(fresh, retry=retry).sign(wallet, "after restart")
    assert Account.recover_message(encode_defunct(text="after restart"), signature=signature) == wallet.address


@pytest.mark.asyncio
async def test_without_registry_only_local_wallets_are_known(share_store):
    await share_store.put(PHONE, IdentifierKind.PHONE, "share-token")
    session = await LocalCustodialService(MOCK_CUSTODY_SECRET).open_session()
    assert await session.has_pregen_wallet(PHONE, IdentifierKind.PHONE) is False
