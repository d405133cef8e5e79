"""Tests for the message repository."""

import pytest

from botcipher.core.errors import LedgerQueryError, LedgerUnavailableError, LoadError
from botcipher.schemas.message import ChatMessage
from botcipher.services.repository import MessageRepository, compute_stats
from tests.fakes import FakeLedger

IDENTITY = "0xABC"


@pytest.fixture
def ledger():
    return FakeLedger(signer=IDENTITY)


@pytest.fixture
def repository(ledger):
    return MessageRepository(ledger, bot_id_prefix="bot")


@pytest.mark.asyncio
async def test_refresh_preserves_ledger_order(ledger, repository):
    ledger.add_record("msg-3", timestamp=30)
    ledger.add_record("msg-1", timestamp=10)
    ledger.add_record("msg-2", timestamp=20)

    snapshot = await repository.refresh(IDENTITY)

    assert [m.id for m in snapshot.messages] == ["msg-3", "msg-1", "msg-2"]
    assert repository.snapshot is snapshot


@pytest.mark.asyncio
async def test_refresh_normalizes_records(ledger, repository):
    ledger.add_record("msg-1", "hi", clear_value=5, decrypted_value=0, timestamp=100)
    ledger.add_record("msg-2", "other", creator="0xdef", timestamp=200)
    ledger.add_record("bot-3", "canned reply", timestamp=300)
    ledger.add_record("msg-4", "done", is_verified=True, decrypted_value=7, timestamp=400)

    messages = {m.id: m for m in (await repository.refresh(IDENTITY)).messages}

    assert messages["msg-1"] == ChatMessage(
        id="msg-1",
        content="hi",
        encrypted_value=0,
        timestamp=100,
        is_user=True,
        is_verified=False,
        decrypted_value=None,
    )
    assert messages["msg-2"].is_user is False
    assert messages["bot-3"].is_user is False
    assert messages["msg-4"].is_verified is True
    assert messages["msg-4"].decrypted_value == 7


@pytest.mark.asyncio
async def test_is_user_compares_addresses_case_insensitively(ledger, repository):
    ledger.add_record("msg-1", creator="0xabc")

    snapshot = await repository.refresh("0xABC")

    assert snapshot.messages[0].is_user is True


@pytest.mark.asyncio
async def test_no_identity_means_nothing_is_user_authored(ledger, repository):
    ledger.add_record("msg-1")

    snapshot = await repository.refresh(None)

    assert snapshot.messages[0].is_user is False


@pytest.mark.asyncio
async def test_unreadable_record_is_skipped(ledger, repository):
    ledger.add_record("msg-1")
    ledger.add_record("msg-2")
    ledger.broken_records["msg-1"] = LedgerQueryError("decode failure")

    snapshot = await repository.refresh(IDENTITY)

    assert [m.id for m in snapshot.messages] == ["msg-2"]
    assert snapshot.stats.total_messages == 1


@pytest.mark.asyncio
async def test_enumeration_failure_raises_load_error(ledger, repository):
    ledger.list_error = LedgerUnavailableError("ledger gateway request failed")

    with pytest.raises(LoadError):
        await repository.refresh(IDENTITY)


@pytest.mark.asyncio
async def test_unreachable_ledger_mid_refresh_raises_load_error(ledger, repository):
    ledger.add_record("msg-1")
    ledger.add_record("msg-2")
    await repository.refresh(IDENTITY)
    previous = repository.snapshot
    ledger.broken_records["msg-2"] = LedgerUnavailableError("circuit breaker is open")

    with pytest.raises(LoadError):
        await repository.refresh(IDENTITY)

    assert repository.snapshot is previous


@pytest.mark.asyncio
async def test_verification_is_monotonic(ledger, repository):
    record = ledger.add_record("msg-1", clear_value=9)
    record.is_verified = True
    record.decrypted_value = 9
    await repository.refresh(IDENTITY)

    # A lagging read reports the record as unverified again.
    record.is_verified = False
    record.decrypted_value = 0
    snapshot = await repository.refresh(IDENTITY)

    assert snapshot.messages[0].is_verified is True
    assert snapshot.messages[0].decrypted_value == 9
    assert snapshot.stats.encrypted_messages == 1


@pytest.mark.asyncio
async def test_stats_are_published_with_messages(ledger, repository):
    ledger.add_record("msg-1", timestamp=10)
    ledger.add_record("msg-2", is_verified=True, decrypted_value=0, timestamp=20)
    ledger.add_record("msg-3", is_verified=True, decrypted_value=4, timestamp=30)
    published = []
    repository.subscribe(published.append)

    snapshot = await repository.refresh(IDENTITY)

    assert published == [snapshot]
    assert snapshot.stats.total_messages == 3
    assert snapshot.stats.encrypted_messages == 2
    assert snapshot.stats.verified_messages == 1
    assert snapshot.stats.average_timestamp == 20


def test_stats_of_empty_sequence():
    stats = compute_stats([])
    assert stats.total_messages == 0
    assert stats.average_timestamp == 0.0


def test_stats_consistency():
    messages = [
        ChatMessage(id=f"m{i}", content="", timestamp=i, is_user=True,
                    is_verified=i % 2 == 0, decrypted_value=i if i % 2 == 0 else None)
        for i in range(7)
    ]

    stats = compute_stats(messages)

    assert stats.total_messages == len(messages)
    assert stats.encrypted_messages == len([m for m in messages if m.is_verified])
    assert stats.verified_messages <= stats.encrypted_messages
