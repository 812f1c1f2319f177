"""Unit tests for VerificationCodeStore."""

from unittest.mock import AsyncMock

import pytest

from verigate.core.exceptions import StoreUnavailableError
from verigate.domain.interfaces.store import ISharedStore
from verigate.domain.verification.entities import VerificationCode
from verigate.infrastructure.repositories.verification_code_store import VerificationCodeStore


@pytest.fixture
def record():
    return VerificationCode(subject_id="u1", code="482913", contact_address="a@example.com")


@pytest.mark.asyncio
async def test_put_and_get(code_store, store, record):
    await code_store.put(record, ttl_seconds=1800)

    assert await code_store.get("u1") == record
    assert await store.get("otp:u1") == record.to_json()
    assert await code_store.remaining_ttl("u1") == 1800


@pytest.mark.asyncio
async def test_missing_record(code_store):
    assert await code_store.get("u1") is None
    assert await code_store.delete("u1") is False
    assert await code_store.remaining_ttl("u1") == 0
    assert await code_store.increment_attempts("u1") is None


@pytest.mark.asyncio
async def test_malformed_record_reads_as_missing_and_is_left_in_place(code_store, store):
    await store.set("otp:u1", "garbage", 60)

    assert await code_store.get("u1") is None
    assert await store.get("otp:u1") == "garbage"


@pytest.mark.asyncio
async def test_increment_keeps_ttl(code_store, clock, record):
    await code_store.put(record, ttl_seconds=1800)
    clock.advance(100_000)

    updated = await code_store.increment_attempts("u1")

    assert updated.attempts == 1
    assert (await code_store.get("u1")).attempts == 1
    assert await code_store.remaining_ttl("u1") == 1700


@pytest.mark.asyncio
async def test_increment_retries_conflicts(record):
    store = AsyncMock(spec=ISharedStore)
    store.get.return_value = record.to_json()
    store.compare_and_set.side_effect = [False, False, True]
    code_store = VerificationCodeStore(store, max_cas_retries=5)

    updated = await code_store.increment_attempts("u1")

    assert updated.attempts == 1
    assert store.compare_and_set.await_count == 3


@pytest.mark.asyncio
async def test_increment_fails_closed_when_conflicts_persist(record):
    store = AsyncMock(spec=ISharedStore)
    store.get.return_value = record.to_json()
    store.compare_and_set.return_value = False
    code_store = VerificationCodeStore(store, max_cas_retries=3)

    with pytest.raises(StoreUnavailableError):
        await code_store.increment_attempts("u1")

    assert store.compare_and_set.await_count == 3


@pytest.mark.asyncio
async def test_lock_marker_is_consumed_once(code_store):
    await code_store.lock("u1", 30)

    assert await code_store.is_locked("u1") is True
    assert await code_store.is_locked("u1") is True
    assert await code_store.consume_lock("u1") is True
    assert await code_store.consume_lock("u1") is False
    assert await code_store.is_locked("u1") is False


@pytest.mark.asyncio
async def test_put_clears_lock_marker(code_store, record):
    await code_store.lock("u1", 30)

    await code_store.put(record, ttl_seconds=1800)

    assert await code_store.consume_lock("u1") is False


def test_keys(code_store):
    assert code_store.key_for("u1") == "otp:u1"
    assert code_store.lock_key_for("u1") == "otp:u1:locked"
