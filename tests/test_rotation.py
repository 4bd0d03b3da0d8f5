"""Tests for the sync and async key rotation loops."""

import random

import pytest

from maktaba.credentials import CredentialPool
from maktaba.errors import (
    AllCredentialsFailed,
    NoCredentials,
    QuotaExceeded,
    ServerError,
    ServiceBusy,
)
from maktaba.rotation import call_with_rotation, connect_with_rotation


# -- call_with_rotation --

def test_first_key_succeeds():
    pool = CredentialPool(["k1", "k2"])
    seen = []

    def attempt(key):
        seen.append(key)
        return "ok"

    assert call_with_rotation(pool, attempt) == "ok"
    assert seen == ["k1"]
    assert pool.cursor == 0


def test_rotates_to_next_key_on_failure():
    pool = CredentialPool(["k1", "k2", "k3"])
    seen = []

    def attempt(key):
        seen.append(key)
        if key != "k2":
            raise QuotaExceeded("429", status_code=429)
        return "ok"

    assert call_with_rotation(pool, attempt) == "ok"
    assert seen == ["k1", "k2"]
    # Cursor stays on the key that worked
    assert pool.current() == "k2"


def test_all_keys_fail_raises_service_busy():
    pool = CredentialPool(["k1", "k2", "k3", "k4"], start=2)
    seen = []

    def attempt(key):
        seen.append(key)
        raise ServerError(f"boom {key}", status_code=500)

    with pytest.raises(ServiceBusy) as exc_info:
        call_with_rotation(pool, attempt)

    assert seen == ["k3", "k4", "k1", "k2"]
    assert exc_info.value.attempts == 4
    assert "boom k2" in str(exc_info.value.last_error)
    assert exc_info.value.message


def test_cursor_is_shared_between_calls():
    pool = CredentialPool(["k1", "k2"])

    def fail_on_k1(key):
        if key == "k1":
            raise QuotaExceeded("429")
        return key

    assert call_with_rotation(pool, fail_on_k1) == "k2"
    # Next call starts where the previous one left off
    assert call_with_rotation(pool, lambda key: key) == "k2"


def test_non_retryable_error_propagates():
    pool = CredentialPool(["k1", "k2"])
    calls = []

    def attempt(key):
        calls.append(key)
        raise ServerError("500")

    with pytest.raises(ServerError):
        call_with_rotation(pool, attempt, retryable=(QuotaExceeded,))
    assert calls == ["k1"]


def test_empty_pool_makes_no_calls():
    calls = []
    with pytest.raises(NoCredentials):
        call_with_rotation(CredentialPool([]), lambda key: calls.append(key))
    assert calls == []


# -- connect_with_rotation --

@pytest.mark.asyncio
async def test_connect_tries_each_key_once_then_fails():
    pool = CredentialPool(["k1", "k2", "k3"])
    seen = []

    async def connect(key):
        seen.append(key)
        raise ConnectionError(f"refused {key}")

    with pytest.raises(AllCredentialsFailed) as exc_info:
        await connect_with_rotation(pool, connect, rng=random.Random(0))

    assert sorted(seen) == ["k1", "k2", "k3"]
    assert exc_info.value.attempts == 3
    assert isinstance(exc_info.value, ServiceBusy)
    assert pool.cursor == 0


@pytest.mark.asyncio
async def test_connect_starts_at_random_offset():
    pool = CredentialPool(["k1", "k2", "k3"])

    class FixedRng:
        def randrange(self, n):
            return 2

    seen = []

    async def connect(key):
        seen.append(key)
        if key == "k3":
            raise ConnectionError("nope")
        return f"session-{key}"

    assert await connect_with_rotation(pool, connect, rng=FixedRng()) == "session-k1"
    assert seen == ["k3", "k1"]


@pytest.mark.asyncio
async def test_connect_empty_pool():
    async def connect(key):
        raise AssertionError("should not be called")

    with pytest.raises(NoCredentials):
        await connect_with_rotation(CredentialPool([]), connect)
