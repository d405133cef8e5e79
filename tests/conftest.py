# tests/conftest.py
from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from botcipher.api.v1.dependencies import OperationGuard, get_operation_guard, get_orchestrator
from botcipher.main import app as fastapi_app
from botcipher.services.orchestrator import MessageOrchestrator
from botcipher.services.repository import MessageRepository
from botcipher.services.session import WalletSession
from botcipher.services.status import TransactionStatusChannel
from tests.fakes import FakeEncryption, FakeLedger, FakeVerifier

IDENTITY = "0xABC"
CONTRACT = "0x00000000000000000000000000000000000c0de"

# Short enough to keep the suite fast, long enough to observe before expiry.
SUCCESS_CLEAR = 0.05
ERROR_CLEAR = 0.08


class SteppingClock:
    """Deterministic wall clock that advances one millisecond per reading."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start

    def __call__(self) -> float:
        self._now += 0.001
        return self._now


@pytest.fixture()
def ledger() -> FakeLedger:
    return FakeLedger(signer=IDENTITY)


@pytest.fixture()
def encryption() -> FakeEncryption:
    return FakeEncryption()


@pytest.fixture()
def verifier(ledger: FakeLedger) -> FakeVerifier:
    return FakeVerifier(ledger)


@pytest.fixture()
def status_channel() -> TransactionStatusChannel:
    return TransactionStatusChannel(
        success_clear_seconds=SUCCESS_CLEAR,
        error_clear_seconds=ERROR_CLEAR,
    )


@pytest.fixture()
def session() -> WalletSession:
    return WalletSession.for_identity(IDENTITY)


@pytest.fixture()
def orchestrator(
    ledger: FakeLedger,
    encryption: FakeEncryption,
    verifier: FakeVerifier,
    status_channel: TransactionStatusChannel,
) -> MessageOrchestrator:
    return MessageOrchestrator(
        ledger,
        encryption,
        verifier,
        repository=MessageRepository(ledger, bot_id_prefix="bot"),
        status=status_channel,
        contract_address=CONTRACT,
        bot_delay_seconds=0.0,
        clock=SteppingClock(),
    )


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(
    app: FastAPI,
    orchestrator: MessageOrchestrator,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[TestClient]:
    guard = OperationGuard()
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_operation_guard] = lambda: guard
    monkeypatch.setattr("botcipher.main.get_orchestrator", lambda: orchestrator)
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_orchestrator, None)
        app.dependency_overrides.pop(get_operation_guard, None)
