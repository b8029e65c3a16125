"""
SQLAlchemy implementation of the Unit of Work pattern.
"""

from __future__ import annotations

import contextlib
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, cast

from ..exceptions import SessionManagementError, UnitOfWorkError
from ..uow import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from types import TracebackType

    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]
    UnitOfWorkFactory = Callable[[], "SQLAlchemyUnitOfWork"]


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work implementation using SQLAlchemy AsyncSession.

    Supports two usage patterns:

    1. **Caller-Managed Sessions**:
       ```python
       async with SQLAlchemyUnitOfWork(session=session) as uow:
           await users.save(user, uow=uow)
       ```

    2. **Self-Managed Sessions**:
       ```python
       factory = async_sessionmaker(engine, expire_on_commit=False)
       async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
           await users.save(user, uow=uow)
       ```
       The UoW creates and closes the session automatically.

    **Important:** Exactly one of `session` or `session_factory` must be provided.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if session is not None and session_factory is not None:
            raise SessionManagementError(
                "Cannot provide both 'session' and 'session_factory'."
            )
        if session is None and session_factory is None:
            raise SessionManagementError(
                "Must provide either 'session' or 'session_factory'."
            )

        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = session_factory is not None

    @classmethod
    def factory(cls, session_factory: AsyncSessionFactory) -> UnitOfWorkFactory:
        """Return a zero-argument callable creating self-managed units of work."""
        return lambda: cls(session_factory=session_factory)

    @property
    def session(self) -> AsyncSession:
        """Get the active session. Raises if session not yet created."""
        if self._session is None:
            raise UnitOfWorkError(
                "Session not yet created. Ensure __aenter__ was called."
            )
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        """Begin a transaction, creating the session if a factory was given."""
        try:
            if self._owns_session and self._session_factory:
                self._session = self._session_factory()

            if not self.session.in_transaction():
                await self.session.begin()

            return self
        except Exception as e:  # noqa: BLE001
            if isinstance(e, (SessionManagementError, UnitOfWorkError)):
                raise
            raise SessionManagementError(f"Failed to initialize UoW: {e}") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self._owns_session and self._session is not None:
                try:
                    await self._session.close()
                except Exception as e:  # noqa: BLE001
                    raise SessionManagementError(f"Failed to close session: {e}") from e
                finally:
                    self._session = None

    async def commit(self) -> None:
        """Commit the current transaction."""
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e


@asynccontextmanager
async def session_scope(
    uow_factory: UnitOfWorkFactory, uow: UnitOfWork | None = None
) -> AsyncIterator[AsyncSession]:
    """Yield the caller's session, or one from a fresh self-managed UoW."""
    if uow is not None:
        yield cast("SQLAlchemyUnitOfWork", uow).session
        return
    async with uow_factory() as own:
        yield own.session


__all__: list[str] = ["SQLAlchemyUnitOfWork", "session_scope"]
