"""Tests for KeyedLock."""

from __future__ import annotations

import asyncio

import pytest

from cqrs_ddd_challenges import IdentityType, KeyedLock, LockAcquisitionError
from cqrs_ddd_challenges.locking import challenge_key


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self) -> None:
        locks = KeyedLock()
        trace: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("k"):
                trace.append(f"{name}:in")
                await asyncio.sleep(0.01)
                trace.append(f"{name}:out")

        await asyncio.gather(worker("a"), worker("b"))

        assert trace in (
            ["a:in", "a:out", "b:in", "b:out"],
            ["b:in", "b:out", "a:in", "a:out"],
        )

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self) -> None:
        locks = KeyedLock(timeout=0.5)
        async with locks.hold("a"):
            async with locks.hold("b"):
                assert locks.is_held("a")
                assert locks.is_held("b")

    @pytest.mark.asyncio
    async def test_timeout_raises(self) -> None:
        locks = KeyedLock(timeout=0.05)
        async with locks.hold("k"):
            with pytest.raises(LockAcquisitionError) as exc_info:
                async with locks.hold("k"):
                    pass
        assert exc_info.value.key == "k"
        assert exc_info.value.timeout == 0.05

    @pytest.mark.asyncio
    async def test_unused_locks_are_dropped(self) -> None:
        locks = KeyedLock()
        async with locks.hold("k"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert not locks.is_held("k")

    @pytest.mark.asyncio
    async def test_released_when_body_raises(self) -> None:
        locks = KeyedLock(timeout=0.05)
        with pytest.raises(RuntimeError):
            async with locks.hold("k"):
                raise RuntimeError("boom")
        async with locks.hold("k"):
            pass

    @pytest.mark.asyncio
    async def test_timed_out_waiter_leaves_queue(self) -> None:
        locks = KeyedLock(timeout=0.05)
        async with locks.hold("k"):
            with pytest.raises(LockAcquisitionError):
                async with locks.hold("k"):
                    pass
        assert not locks.is_held("k")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_waiter_abandoned_during_handover_releases(self) -> None:
        locks = KeyedLock(timeout=1.0)
        holder = locks.hold("k")
        await holder.__aenter__()

        async def wait_for_lock() -> None:
            async with locks.hold("k"):
                await asyncio.sleep(0)

        waiter = asyncio.create_task(wait_for_lock())
        await asyncio.sleep(0)
        await holder.__aexit__(None, None, None)
        waiter.cancel()
        await asyncio.gather(waiter, return_exceptions=True)

        assert not locks.is_held("k")
        async with locks.hold("k"):
            assert locks.is_held("k")

    @pytest.mark.asyncio
    async def test_waiters_served_in_order(self) -> None:
        locks = KeyedLock()
        order: list[int] = []

        async def worker(n: int) -> None:
            async with locks.hold("k"):
                order.append(n)

        async with locks.hold("k"):
            tasks = [asyncio.create_task(worker(n)) for n in range(3)]
            await asyncio.sleep(0)
        await asyncio.gather(*tasks)

        assert order == [0, 1, 2]


def test_challenge_key() -> None:
    assert challenge_key(7, IdentityType.PHONE_2FA) == "identity:phone_2fa:7"
