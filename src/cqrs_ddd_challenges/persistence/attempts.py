"""SQLAlchemyLoginAttemptStore: append-only ``auth_logins`` table."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from ..domain import IdentityType, LoginAttempt, as_utc, utcnow
from ..ports import ILoginAttemptStore
from .models import LoginModel

if TYPE_CHECKING:
    from .uow import UnitOfWorkFactory


class SQLAlchemyLoginAttemptStore(ILoginAttemptStore):
    """Writes each attempt in its own short transaction."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self._clock = clock

    async def record_login_attempt(
        self,
        id_type: IdentityType,
        identifier: str,
        success: bool,
        ip_address: str,
        user_agent: str | None = None,
        user_id: int | None = None,
    ) -> None:
        async with self._uow_factory() as uow:
            uow.session.add(
                LoginModel(
                    id_type=id_type.value,
                    identifier=identifier,
                    success=success,
                    ip_address=ip_address,
                    user_agent=user_agent,
                    user_id=user_id,
                    date=self._clock(),
                )
            )

    async def list_for_identifier(self, identifier: str) -> list[LoginAttempt]:
        """Attempts keyed by ``identifier``, oldest first."""
        async with self._uow_factory() as uow:
            rows = (
                await uow.session.scalars(
                    select(LoginModel)
                    .where(LoginModel.identifier == identifier)
                    .order_by(LoginModel.id)
                )
            ).all()
            return [
                LoginAttempt(
                    id_type=IdentityType(row.id_type),
                    identifier=row.identifier,
                    success=row.success,
                    ip_address=row.ip_address,
                    user_agent=row.user_agent,
                    user_id=row.user_id,
                    date=as_utc(row.date) or utcnow(),
                )
                for row in rows
            ]


__all__: list[str] = ["SQLAlchemyLoginAttemptStore"]
