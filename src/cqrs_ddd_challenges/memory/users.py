"""InMemoryUserRepository: dict-backed user rows."""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING

from ..domain import IdentityType, User, utcnow
from ..ports import IUserRepository
from .uow import register_undo

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from ..uow import UnitOfWork
    from .identities import InMemoryIdentityStore

# Fields that live on identities, not on the user row.
_IDENTITY_FIELDS = {"phone", "password", "password_hash", "identities"}


class InMemoryUserRepository(IUserRepository):
    """In-memory implementation of IUserRepository.

    Stores bare user rows. Phone and password hash are read back from the
    phone/password identity in the paired InMemoryIdentityStore, exactly as
    a database adapter would join them.
    """

    def __init__(self, identities: InMemoryIdentityStore) -> None:
        self.identities = identities
        self._rows: dict[int, User] = {}
        self._ids = itertools.count(1)

    async def _hydrate(self, row: User, with_identities: bool) -> User:
        assert row.id is not None
        credential = await self.identities.find_by_type(
            row.id, IdentityType.PHONE_PASSWORD
        )
        update: dict[str, object] = {}
        if credential is not None:
            update["phone"] = credential.secret
            update["password_hash"] = credential.secret2
        if with_identities:
            mapping = await self.identities.bulk_fetch_for_users([row.id])
            update["identities"] = mapping.get(row.id, [])
        return row.model_copy(update=update, deep=True)

    async def find_by_id(
        self,
        user_id: int,
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> User | None:
        row = self._rows.get(user_id)
        if row is None:
            return None
        return await self._hydrate(row, with_identities)

    async def find_many(
        self,
        user_ids: Iterable[int],
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> list[User]:
        ids = [i for i in dict.fromkeys(user_ids) if i in self._rows]
        users = [await self._hydrate(self._rows[i], False) for i in ids]
        if with_identities and users:
            mapping = await self.identities.bulk_fetch_for_users(ids)
            users = [
                u.model_copy(update={"identities": mapping.get(u.id, [])})  # type: ignore[arg-type]
                for u in users
            ]
        return users

    async def find_by_phone(
        self, phone: str, *, uow: UnitOfWork | None = None  # noqa: ARG002
    ) -> User | None:
        wanted = phone.lower()
        for identity in self.identities.all():
            if (
                identity.type is IdentityType.PHONE_PASSWORD
                and identity.secret.lower() == wanted
                and identity.user_id in self._rows
            ):
                return await self._hydrate(self._rows[identity.user_id], False)
        return None

    async def save(self, user: User, *, uow: UnitOfWork | None = None) -> int:
        row = user.model_copy(
            update={f: None for f in _IDENTITY_FIELDS}, deep=True
        )
        if row.id is None:
            new_id = next(self._ids)
            row = row.model_copy(
                update={"id": new_id, "created_at": row.created_at or utcnow()}
            )
            self._rows[new_id] = row
            register_undo(uow, lambda: self._rows.pop(new_id, None))
            return new_id

        previous = self._rows.get(row.id)
        self._rows[row.id] = row
        user_id = row.id
        if previous is None:
            register_undo(uow, lambda: self._rows.pop(user_id, None))
        else:
            register_undo(uow, lambda: self._rows.__setitem__(user_id, previous))
        return user_id

    def _replace(self, user_id: int, uow: UnitOfWork | None, **changes: object) -> None:
        previous = self._rows.get(user_id)
        if previous is None:
            return
        self._rows[user_id] = previous.model_copy(update=changes)
        register_undo(uow, lambda: self._rows.__setitem__(user_id, previous))

    async def set_active(
        self, user_id: int, active: bool, *, uow: UnitOfWork | None = None
    ) -> None:
        self._replace(user_id, uow, active=active)

    async def update_active_date(
        self, user_id: int, when: datetime, *, uow: UnitOfWork | None = None
    ) -> None:
        self._replace(user_id, uow, last_active=when)

    async def add_to_group(
        self, user_id: int, group: str, *, uow: UnitOfWork | None = None
    ) -> None:
        row = self._rows.get(user_id)
        if row is None or row.in_group(group):
            return
        self._replace(user_id, uow, groups=[*row.groups, group])

    async def delete(self, user_id: int, *, uow: UnitOfWork | None = None) -> bool:
        row = self._rows.pop(user_id, None)
        if row is None:
            return False
        register_undo(uow, lambda: self._rows.__setitem__(user_id, row))
        await self.identities.delete_all_for_user(user_id, uow=uow)
        return True

    def __len__(self) -> int:
        return len(self._rows)


__all__: list[str] = ["InMemoryUserRepository"]
