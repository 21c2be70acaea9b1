"""Fixtures wiring the real custodial service and share store with fake time and relay."""

import pytest

from pregen_mint.adapters.custody.local import LocalCustodialService
from pregen_mint.adapters.stores.memory import InMemoryShareStore
from pregen_mint.config import Settings
from pregen_mint.engine.retry import RetryExecutor
from pregen_mint.servers.apps import build_orchestrator

from tests.fakes import MOCK_CUSTODY_SECRET, FakeClock, FakeRelay, FakeSleep


@pytest.fixture
def fake_sleep() -> FakeSleep:
    return FakeSleep()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        custody_secret=MOCK_CUSTODY_SECRET,
        circuit_breaker_threshold=10,
        circuit_breaker_reset_time=300000,
        max_retries=3,
        initial_retry_delay=1000,
    )


@pytest.fixture
def retry(fake_sleep) -> RetryExecutor:
    return RetryExecutor(max_retries=3, base_delay_ms=1000, sleep=fake_sleep)


@pytest.fixture
def custody(share_store) -> LocalCustodialService:
    return LocalCustodialService(MOCK_CUSTODY_SECRET, registry=share_store)


@pytest.fixture
def share_store() -> InMemoryShareStore:
    return InMemoryShareStore()


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def orchestrator(settings, custody, share_store, relay, fake_sleep):
    return build_orchestrator(
        settings,
        custody=custody,
        share_store=share_store,
        relay=relay,
        sleep=fake_sleep,
    )
