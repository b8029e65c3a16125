"""SQLAlchemyIdentityStore: identity records in ``auth_identities``."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..config import ChallengeConfig
from ..domain import Identity, IdentityType, as_utc, utcnow
from ..exceptions import ChallengePersistenceError, IdentityConflictError
from ..generator import SecretGenerator, SecretPolicy
from ..locking import KeyedLock, challenge_key
from ..ports import IIdentityStore
from .models import IdentityModel, UserModel
from .uow import session_scope

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from ..uow import UnitOfWork
    from .uow import UnitOfWorkFactory

logger = logging.getLogger(__name__)


def identity_from_model(model: IdentityModel) -> Identity:
    """Map a row to the domain type, normalizing datetimes to UTC."""
    return Identity(
        id=model.id,
        user_id=model.user_id,
        type=IdentityType(model.type),
        secret=model.secret,
        secret2=model.secret2,
        name=model.name,
        extra=model.extra,
        expires=as_utc(model.expires),
        created_at=as_utc(model.created_at) or utcnow(),
        updated_at=as_utc(model.updated_at),
    )


async def load_identities(
    session: AsyncSession, user_ids: Iterable[int]
) -> dict[int, list[Identity]]:
    """One query for the identities of many users, grouped by user id."""
    ids = list(dict.fromkeys(user_ids))
    if not ids:
        return {}
    stmt = (
        select(IdentityModel)
        .where(IdentityModel.user_id.in_(ids))
        .order_by(IdentityModel.id)
    )
    grouped: dict[int, list[Identity]] = defaultdict(list)
    for model in (await session.scalars(stmt)).all():
        grouped[model.user_id].append(identity_from_model(model))
    return dict(grouped)


class SQLAlchemyIdentityStore(IIdentityStore):
    """
    IIdentityStore backed by SQLAlchemy.

    Issuance is serialized three ways: a KeyedLock inside the process, a
    ``SELECT ... FOR UPDATE`` on the owning user row across processes (where
    the dialect supports it), and ``UNIQUE(user_id, type)`` as the last line.
    A self-managed issuance that still hits a unique violation is retried
    once with a fresh secret.

    Example:
        ```python
        uow_factory = SQLAlchemyUnitOfWork.factory(session_factory)
        store = SQLAlchemyIdentityStore(uow_factory, config=ChallengeConfig())
        code = await store.create_challenge(
            user_id, IdentityType.PHONE_2FA,
            policy=SecretPolicy.NUMERIC_CODE, ttl_seconds=600,
        )
        ```
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        config: ChallengeConfig | None = None,
        generator: SecretGenerator | None = None,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._uow_factory = uow_factory
        self.config = config or ChallengeConfig()
        self.generator = generator or SecretGenerator(self.config)
        self.locks = locks or KeyedLock()
        self._clock = clock

    async def delete_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,
    ) -> int:
        async with session_scope(self._uow_factory, uow) as session:
            result = await session.execute(
                delete(IdentityModel).where(
                    IdentityModel.user_id == user_id,
                    IdentityModel.type == identity_type.value,
                )
            )
            return int(result.rowcount or 0)  # type: ignore[attr-defined]

    async def _issue(
        self,
        session: AsyncSession,
        user_id: int,
        identity_type: IdentityType,
        policy: SecretPolicy,
        ttl_seconds: int,
        name: str | None,
        extra: str | None,
    ) -> str:
        await session.execute(
            select(UserModel.id).where(UserModel.id == user_id).with_for_update()
        )
        await session.execute(
            delete(IdentityModel).where(
                IdentityModel.user_id == user_id,
                IdentityModel.type == identity_type.value,
            )
        )
        secret = self.generator.generate(policy)
        now = self._clock()
        session.add(
            IdentityModel(
                user_id=user_id,
                type=identity_type.value,
                secret=secret,
                name=name,
                extra=extra,
                expires=now + timedelta(seconds=ttl_seconds),
                created_at=now,
            )
        )
        try:
            await session.flush()
        except IntegrityError as e:
            raise IdentityConflictError(
                f"Conflicting {identity_type.value} identity for user {user_id}"
            ) from e
        except SQLAlchemyError as e:
            raise ChallengePersistenceError(
                f"Failed to store {identity_type.value} identity "
                f"for user {user_id}: {e}"
            ) from e
        return secret

    async def create_challenge(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        policy: SecretPolicy,
        ttl_seconds: int,
        name: str | None = None,
        extra: str | None = None,
        uow: UnitOfWork | None = None,
    ) -> str:
        if not identity_type.is_challenge:
            raise ValueError(f"{identity_type.value} is not a challenge type")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        async with self.locks.hold(challenge_key(user_id, identity_type)):
            if uow is not None:
                async with session_scope(self._uow_factory, uow) as session:
                    return await self._issue(
                        session, user_id, identity_type, policy, ttl_seconds, name, extra
                    )

            try:
                async with self._uow_factory() as own:
                    return await self._issue(
                        own.session,
                        user_id,
                        identity_type,
                        policy,
                        ttl_seconds,
                        name,
                        extra,
                    )
            except IdentityConflictError:
                logger.warning(
                    "Retrying %s issuance for user %s after a unique violation",
                    identity_type.value,
                    user_id,
                )
            async with self._uow_factory() as own:
                return await self._issue(
                    own.session, user_id, identity_type, policy, ttl_seconds, name, extra
                )

    async def find_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,
    ) -> Identity | None:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.scalar(
                select(IdentityModel)
                .where(
                    IdentityModel.user_id == user_id,
                    IdentityModel.type == identity_type.value,
                )
                .order_by(IdentityModel.id.desc())
                .limit(1)
            )
            return identity_from_model(model) if model is not None else None

    async def find_by_secret(
        self,
        identity_type: IdentityType,
        secret: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> Identity | None:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.scalar(
                select(IdentityModel).where(
                    IdentityModel.type == identity_type.value,
                    IdentityModel.secret == secret,
                )
            )
            return identity_from_model(model) if model is not None else None

    async def delete_by_id(
        self, identity_id: int, *, uow: UnitOfWork | None = None
    ) -> bool:
        async with session_scope(self._uow_factory, uow) as session:
            result = await session.execute(
                delete(IdentityModel).where(IdentityModel.id == identity_id)
            )
            return result.rowcount == 1  # type: ignore[attr-defined]

    async def bulk_fetch_for_users(
        self,
        user_ids: Iterable[int],
        *,
        uow: UnitOfWork | None = None,
    ) -> dict[int, list[Identity]]:
        async with session_scope(self._uow_factory, uow) as session:
            return await load_identities(session, user_ids)

    async def save_password_identity(
        self,
        user_id: int,
        *,
        phone: str,
        password_hash: str | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        async with session_scope(self._uow_factory, uow) as session:
            model = await session.scalar(
                select(IdentityModel).where(
                    IdentityModel.user_id == user_id,
                    IdentityModel.type == IdentityType.PHONE_PASSWORD.value,
                )
            )
            if model is None:
                session.add(
                    IdentityModel(
                        user_id=user_id,
                        type=IdentityType.PHONE_PASSWORD.value,
                        secret=phone,
                        secret2=password_hash,
                        created_at=self._clock(),
                    )
                )
            else:
                model.secret = phone
                if password_hash is not None:
                    model.secret2 = password_hash
                model.updated_at = self._clock()
            try:
                await session.flush()
            except IntegrityError as e:
                raise IdentityConflictError(
                    f"Phone identity for user {user_id} conflicts with another user"
                ) from e
            except SQLAlchemyError as e:
                raise ChallengePersistenceError(
                    f"Failed to store phone identity for user {user_id}: {e}"
                ) from e


__all__: list[str] = [
    "SQLAlchemyIdentityStore",
    "identity_from_model",
    "load_identities",
]
