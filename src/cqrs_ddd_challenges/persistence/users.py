"""SQLAlchemyUserRepository: ``users`` rows joined with their credential."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from sqlalchemy import delete, func, select, update

from ..domain import IdentityType, User, as_utc
from ..ports import IUserRepository
from .identities import load_identities
from .models import GroupMembershipModel, IdentityModel, UserModel
from .uow import session_scope

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession

    from ..uow import UnitOfWork
    from .uow import UnitOfWorkFactory


class SQLAlchemyUserRepository(IUserRepository):
    """
    IUserRepository backed by SQLAlchemy.

    Every load populates ``phone`` and ``password_hash`` from the
    phone/password identity and ``groups`` from ``auth_groups_users``.
    Other identities are only loaded when ``with_identities=True``, in one
    batched query for all requested users.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def _load(
        self,
        session: AsyncSession,
        models: list[UserModel],
        with_identities: bool,
    ) -> list[User]:
        if not models:
            return []
        ids = [m.id for m in models]

        credentials = {
            c.user_id: c
            for c in (
                await session.scalars(
                    select(IdentityModel).where(
                        IdentityModel.user_id.in_(ids),
                        IdentityModel.type == IdentityType.PHONE_PASSWORD.value,
                    )
                )
            ).all()
        }
        groups: dict[int, list[str]] = defaultdict(list)
        for membership in (
            await session.scalars(
                select(GroupMembershipModel)
                .where(GroupMembershipModel.user_id.in_(ids))
                .order_by(GroupMembershipModel.id)
            )
        ).all():
            groups[membership.user_id].append(membership.group)
        identities = await load_identities(session, ids) if with_identities else None

        users = []
        for model in models:
            credential = credentials.get(model.id)
            users.append(
                User(
                    id=model.id,
                    username=model.username,
                    active=model.active,
                    status=model.status,
                    status_message=model.status_message,
                    phone=credential.secret if credential else None,
                    password_hash=credential.secret2 if credential else None,
                    groups=groups.get(model.id, []),
                    identities=(
                        identities.get(model.id, []) if identities is not None else None
                    ),
                    last_active=as_utc(model.last_active),
                    created_at=as_utc(model.created_at),
                )
            )
        return users

    async def find_by_id(
        self,
        user_id: int,
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,
    ) -> User | None:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.get(UserModel, user_id)
            if model is None:
                return None
            return (await self._load(session, [model], with_identities))[0]

    async def find_many(
        self,
        user_ids: Iterable[int],
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,
    ) -> list[User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return []
        async with session_scope(self._uow_factory, uow) as session:
            models = (
                await session.scalars(
                    select(UserModel).where(UserModel.id.in_(ids)).order_by(UserModel.id)
                )
            ).all()
            return await self._load(session, list(models), with_identities)

    async def find_by_phone(
        self, phone: str, *, uow: UnitOfWork | None = None
    ) -> User | None:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.scalar(
                select(UserModel)
                .join(IdentityModel, IdentityModel.user_id == UserModel.id)
                .where(
                    IdentityModel.type == IdentityType.PHONE_PASSWORD.value,
                    func.lower(IdentityModel.secret) == phone.lower(),
                )
                .limit(1)
            )
            if model is None:
                return None
            return (await self._load(session, [model], False))[0]

    async def save(self, user: User, *, uow: UnitOfWork | None = None) -> int:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.get(UserModel, user.id) if user.id is not None else None
            if model is None:
                model = UserModel(id=user.id)
                if user.created_at is not None:
                    model.created_at = user.created_at
                session.add(model)
            model.username = user.username
            model.active = user.active
            model.status = user.status
            model.status_message = user.status_message
            model.last_active = user.last_active
            await session.flush()
            return model.id

    async def set_active(
        self, user_id: int, active: bool, *, uow: UnitOfWork | None = None
    ) -> None:
        async with session_scope(self._uow_factory, uow) as session:
            await session.execute(
                update(UserModel).where(UserModel.id == user_id).values(active=active)
            )

    async def update_active_date(
        self, user_id: int, when: datetime, *, uow: UnitOfWork | None = None
    ) -> None:
        async with session_scope(self._uow_factory, uow) as session:
            await session.execute(
                update(UserModel)
                .where(UserModel.id == user_id)
                .values(last_active=when)
            )

    async def add_to_group(
        self, user_id: int, group: str, *, uow: UnitOfWork | None = None
    ) -> None:
        async with session_scope(self._uow_factory, uow) as session:
            existing = await session.scalar(
                select(GroupMembershipModel.id).where(
                    GroupMembershipModel.user_id == user_id,
                    GroupMembershipModel.group == group,
                )
            )
            if existing is None:
                session.add(GroupMembershipModel(user_id=user_id, group=group))
                await session.flush()

    async def delete(self, user_id: int, *, uow: UnitOfWork | None = None) -> bool:
        async with session_scope(self._uow_factory, uow) as session:
            # Explicit child deletes: SQLite only cascades with foreign_keys=ON.
            await session.execute(
                delete(IdentityModel).where(IdentityModel.user_id == user_id)
            )
            await session.execute(
                delete(GroupMembershipModel).where(
                    GroupMembershipModel.user_id == user_id
                )
            )
            result = await session.execute(
                delete(UserModel).where(UserModel.id == user_id)
            )
            return result.rowcount == 1  # type: ignore[attr-defined]


__all__: list[str] = ["SQLAlchemyUserRepository"]
