"""InMemoryUnitOfWork: compensating rollback for the in-memory adapters."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..uow import UnitOfWork

logger = logging.getLogger(__name__)


class InMemoryUnitOfWork(UnitOfWork):
    """In-memory implementation of UnitOfWork for testing.

    In-memory stores apply writes immediately and register an undo callback
    through ``on_rollback``. Rolling back runs the callbacks in reverse
    order; committing discards them. Commit/rollback calls are recorded for
    assertions.
    """

    def __init__(self) -> None:
        self.committed: bool = False
        self.rolled_back: bool = False
        self.commit_count: int = 0
        self.rollback_count: int = 0
        self._compensations: list[Callable[[], None]] = []

    def on_rollback(self, undo: Callable[[], None]) -> None:
        """Register a callback reverting one write."""
        self._compensations.append(undo)

    async def commit(self) -> None:
        if self.committed or self.rolled_back:
            return
        self.committed = True
        self.commit_count += 1
        self._compensations.clear()

    async def rollback(self) -> None:
        if self.committed or self.rolled_back:
            return
        self.rolled_back = True
        self.rollback_count += 1
        while self._compensations:
            self._compensations.pop()()

    # ── Test helpers ─────────────────────────────────────────────

    def reset(self) -> None:
        """Reset commit/rollback tracking (for test setup)."""
        self.committed = False
        self.rolled_back = False
        self.commit_count = 0
        self.rollback_count = 0
        self._compensations.clear()


def register_undo(uow: UnitOfWork | None, undo: Callable[[], None]) -> None:
    """Attach ``undo`` to ``uow`` when it supports compensation."""
    if isinstance(uow, InMemoryUnitOfWork):
        uow.on_rollback(undo)


__all__: list[str] = [
    "InMemoryUnitOfWork",
    "register_undo",
]
