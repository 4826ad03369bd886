"""Tests for the in-process state backend."""

import asyncio
import threading

import pytest

from weather_gateway.state.memory import MemoryStateBackend


@pytest.mark.asyncio
async def test_set_and_get(memory_backend):
    await memory_backend.set_with_ttl("key", b"value", 10)
    assert await memory_backend.get("key") == b"value"


@pytest.mark.asyncio
async def test_missing_key(memory_backend):
    assert await memory_backend.get("missing") is None


@pytest.mark.asyncio
async def test_value_expires(memory_backend, clock):
    await memory_backend.set_with_ttl("key", b"value", 10)
    clock.advance(9.9)
    assert await memory_backend.get("key") == b"value"
    clock.advance(0.1)
    assert await memory_backend.get("key") is None


@pytest.mark.asyncio
async def test_increment_counts_from_one(memory_backend):
    assert await memory_backend.increment_with_ttl("counter", 60) == 1
    assert await memory_backend.increment_with_ttl("counter", 60) == 2
    assert await memory_backend.get("counter") == b"2"


@pytest.mark.asyncio
async def test_increment_keeps_first_expiry(memory_backend, clock):
    """Later increments do not extend the window."""
    await memory_backend.increment_with_ttl("counter", 60)
    clock.advance(59)
    assert await memory_backend.increment_with_ttl("counter", 60) == 2
    clock.advance(1)
    assert await memory_backend.increment_with_ttl("counter", 60) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("ttl", [0, -1])
async def test_rejects_non_positive_ttl(memory_backend, ttl):
    with pytest.raises(ValueError):
        await memory_backend.set_with_ttl("key", b"value", ttl)
    with pytest.raises(ValueError):
        await memory_backend.increment_with_ttl("counter", ttl)


@pytest.mark.asyncio
async def test_expired_keys_are_swept(clock):
    backend = MemoryStateBackend(clock=clock, sweep_interval=10)
    for i in range(5):
        await backend.set_with_ttl(f"old-{i}", b"x", 1)
    clock.advance(2)
    for i in range(5):
        await backend.set_with_ttl(f"new-{i}", b"x", 60)
    assert len(backend) == 5


@pytest.mark.asyncio
async def test_concurrent_increments_are_atomic(memory_backend):
    results = await asyncio.gather(
        *(memory_backend.increment_with_ttl("counter", 60) for _ in range(500))
    )
    assert sorted(results) == list(range(1, 501))


def test_increments_from_many_threads_are_atomic():
    """Each thread runs its own event loop against the shared backend."""
    backend = MemoryStateBackend()
    results: list[int] = []
    results_lock = threading.Lock()

    async def hammer() -> list[int]:
        return [await backend.increment_with_ttl("counter", 60) for _ in range(200)]

    def worker() -> None:
        counts = asyncio.run(hammer())
        with results_lock:
            results.extend(counts)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sorted(results) == list(range(1, 1601))


@pytest.mark.asyncio
async def test_ping(memory_backend):
    assert await memory_backend.ping() is True
