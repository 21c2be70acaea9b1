"""
Test suite for WalletProvisioner.
Tests: 1) First-time creation 2) Restoration from the share store 3) Failure wrapping
"""
import asyncio

import pytest

from pregen_mint.engine.exceptions import WalletOperationError
from pregen_mint.engine.provisioning import WalletProvisioner
from pregen_mint.schemas.bases import IdentifierKind

from tests.fakes import CountingSession

EMAIL = "user@example.com"


@pytest.mark.asyncio
async def test_first_use_creates_wallet_and_persists_share(custody, share_store, retry):
    provisioner = WalletProvisioner(share_store, retry=retry)
    session = await custody.open_session()

    wallet = await provisioner.provision(session, EMAIL, IdentifierKind.EMAIL)

    assert wallet.address.startswith("0x")
    assert await share_store.exists(EMAIL)
    assert await share_store.get_kind(EMAIL) is IdentifierKind.EMAIL


@pytest.mark.asyncio
async def test_second_use_restores_same_wallet(custody, share_store, retry):
    provisioner = WalletProvisioner(share_store, retry=retry)
    first = await provisioner.provision(await custody.open_session(), EMAIL, IdentifierKind.EMAIL)

    session = CountingSession(await custody.open_session())
    second = await provisioner.provision(session, EMAIL, IdentifierKind.EMAIL)

    assert second.address == first.address
    assert "create_pregen_wallet" not in session.calls
    assert session.calls["set_user_share"] == 1
    assert len(share_store.records()) == 1


@pytest.mark.asyncio
async def test_each_step_is_retried(custody, share_store, retry, fake_sleep):
    provisioner = WalletProvisioner(share_store, retry=retry)
    session = CountingSession(
        await custody.open_session(),
        fail={"has_pregen_wallet": 2, "create_pregen_wallet": 1},
    )

    wallet = await provisioner.provision(session, EMAIL, IdentifierKind.EMAIL)

    assert wallet.address
    assert session.calls["has_pregen_wallet"] == 3
    assert session.calls["create_pregen_wallet"] == 2
    assert fake_sleep.delays == [1.0, 2.0, 1.0]


@pytest.mark.asyncio
async def test_missing_share_fails_with_wallet_error(custody, share_store, retry):
    await WalletProvisioner(share_store, retry=retry).provision(
        await custody.open_session(), EMAIL, IdentifierKind.EMAIL
    )
    provisioner = WalletProvisioner(type(share_store)(), retry=retry)

    with pytest.raises(WalletOperationError) as exc:
        await provisioner.provision(await custody.open_session(), EMAIL, IdentifierKind.EMAIL)

    assert exc.value.message == "Wallet operation failed"
    assert isinstance(exc.value.original_error, WalletOperationError)
    assert exc.value.original_error.message == "User share not found in database"


@pytest.mark.asyncio
async def test_exhausted_step_is_wrapped(custody, share_store, retry):
    provisioner = WalletProvisioner(share_store, retry=retry)
    session = CountingSession(await custody.open_session(), fail={"has_pregen_wallet": 5})

    with pytest.raises(WalletOperationError) as exc:
        await provisioner.provision(session, EMAIL, IdentifierKind.EMAIL)

    assert session.calls["has_pregen_wallet"] == 3
    assert "has_pregen_wallet unavailable" in exc.value.describe()


@pytest.mark.asyncio
@pytest.mark.parametrize("identifier,kind", [("", IdentifierKind.EMAIL), (EMAIL, None)])
async def test_invalid_identifier(custody, share_store, retry, identifier, kind):
    provisioner = WalletProvisioner(share_store, retry=retry)
    with pytest.raises(WalletOperationError, match="Invalid identifier or identifier type"):
        await provisioner.provision(await custody.open_session(), identifier, kind)


@pytest.mark.asyncio
async def test_serialized_provisioning_creates_one_wallet(custody, share_store, retry):
    provisioner = WalletProvisioner(share_store, retry=retry, serialize=True)

    sessions = [await custody.open_session() for _ in range(3)]
    wallets = await asyncio.gather(*(
        provisioner.provision(session, EMAIL, IdentifierKind.EMAIL) for session in sessions
    ))

    assert len({wallet.address for wallet in wallets}) == 1
    assert len(share_store.records()) == 1
