"""KeyedLock: in-process serialization of challenge issuance.

Issuing a challenge is delete-then-insert. Two concurrent issuances for the
same (user, type) must not interleave or both records would survive, so
stores take this lock around the whole sequence. Database adapters add
row locks and a unique constraint on top for multi-process deployments.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


@dataclass
class _LockState:
    """
    FIFO lock for one key.

    Waiters queue an event; release hands ownership straight to the oldest
    waiter by setting its event, so ``locked`` never drops in between.
    """

    locked: bool = False
    waiters: deque[asyncio.Event] = field(default_factory=deque)
    ref_count: int = 0

    def release(self) -> None:
        if self.waiters:
            self.waiters.popleft().set()
        else:
            self.locked = False


class KeyedLock:
    """
    One FIFO lock per key, created on demand and dropped when unused.

    Example:
        ```python
        locks = KeyedLock()
        async with locks.hold(f"{user_id}:{identity_type.value}"):
            ...
        ```
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._locks: dict[str, _LockState] = {}

    async def _acquire(self, key: str, state: _LockState) -> None:
        if not state.locked:
            state.locked = True
            return

        event = asyncio.Event()
        state.waiters.append(event)
        try:
            await asyncio.wait_for(event.wait(), timeout=self.timeout)
        except BaseException as err:
            # Ownership may have been handed over as the wait was abandoned.
            if event.is_set():
                state.release()
            else:
                state.waiters.remove(event)
            if isinstance(err, asyncio.TimeoutError):
                logger.warning("Lock acquisition timed out: %s", key)
                raise LockAcquisitionError(key, self.timeout) from err
            raise

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        state = self._locks.get(key)
        if state is None:
            state = self._locks[key] = _LockState()
        state.ref_count += 1
        try:
            await self._acquire(key, state)
            try:
                yield
            finally:
                state.release()
        finally:
            state.ref_count -= 1
            if state.ref_count <= 0:
                self._locks.pop(key, None)

    def is_held(self, key: str) -> bool:
        state = self._locks.get(key)
        return state is not None and state.locked

    def __len__(self) -> int:
        return len(self._locks)


def challenge_key(user_id: int, identity_type: object) -> str:
    """Lock key for one user's challenges of one type."""
    value = getattr(identity_type, "value", identity_type)
    return f"identity:{value}:{user_id}"


__all__: list[str] = ["KeyedLock", "challenge_key"]
