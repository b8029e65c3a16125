"""UnitOfWork: abstract base for transactional scopes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

logger = logging.getLogger(__name__)


class UnitOfWork(ABC):
    """
    Abstract base class for Unit of Work implementations.

    Used as an async context manager: the transaction commits when the block
    exits normally and rolls back when it raises. The exception is never
    suppressed.

    Example:
        ```python
        async with uow_factory() as uow:
            user_id = await users.save(user, uow=uow)
            await identities.save_password_identity(user_id, ..., uow=uow)
        ```
    """

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Roll the transaction back."""
        ...

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        if exc_type is None:
            await self.commit()
        else:
            logger.debug("Rolling back unit of work after %s", exc_type.__name__)
            await self.rollback()


__all__: list[str] = ["UnitOfWork"]
