"""Integration tests for SQLAlchemyIdentityStore."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from cqrs_ddd_challenges import (
    ChallengeConfig,
    IdentityConflictError,
    IdentityType,
    SecretPolicy,
    User,
)
from cqrs_ddd_challenges.persistence import IdentityModel, SQLAlchemyIdentityStore

pytestmark = pytest.mark.integration


class ScriptedGenerator:
    """Returns pre-set secrets in order."""

    def __init__(self, *secrets: str) -> None:
        self._secrets = list(secrets)

    def generate(self, policy: SecretPolicy) -> str:
        return self._secrets.pop(0)


@pytest.fixture
async def user_ids(users) -> list[int]:
    return [
        await users.save(User(username="ada")),
        await users.save(User(username="bob")),
    ]


async def issue(store, user_id: int, **kwargs) -> str:
    identity_type = kwargs.pop("identity_type", IdentityType.PHONE_2FA)
    kwargs.setdefault("policy", SecretPolicy.NUMERIC_CODE)
    kwargs.setdefault("ttl_seconds", 600)
    return await store.create_challenge(user_id, identity_type, **kwargs)


async def count_rows(session_factory, **filters) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(IdentityModel).filter_by(**filters)
        return int(await session.scalar(stmt))


class TestCreateChallenge:
    @pytest.mark.asyncio
    async def test_round_trips_record(self, identities, user_ids, clock) -> None:
        [ada, _] = user_ids
        code = await issue(identities, ada, name="login", extra="Enter the code")

        record = await identities.find_by_type(ada, IdentityType.PHONE_2FA)
        assert record is not None
        assert record.secret == code
        assert record.name == "login"
        assert record.extra == "Enter the code"
        assert record.expires == clock.now + timedelta(seconds=600)
        assert record.expires.tzinfo is not None

    @pytest.mark.asyncio
    async def test_reissue_replaces(self, identities, user_ids, session_factory) -> None:
        [ada, _] = user_ids
        await issue(identities, ada)
        second = await issue(identities, ada)

        record = await identities.find_by_type(ada, IdentityType.PHONE_2FA)
        assert record is not None
        assert record.secret == second
        assert await count_rows(session_factory, user_id=ada) == 1

    @pytest.mark.asyncio
    async def test_concurrent_issuance_leaves_one_record(
        self, identities, user_ids, session_factory
    ) -> None:
        [ada, _] = user_ids
        secrets = await asyncio.gather(*(issue(identities, ada) for _ in range(5)))

        record = await identities.find_by_type(ada, IdentityType.PHONE_2FA)
        assert record is not None
        assert record.secret == secrets[-1]
        assert await count_rows(session_factory, user_id=ada) == 1

    @pytest.mark.asyncio
    async def test_secret_collision_retries_with_fresh_secret(
        self, uow_factory, user_ids, clock
    ) -> None:
        [ada, bob] = user_ids
        store = SQLAlchemyIdentityStore(
            uow_factory,
            config=ChallengeConfig(),
            generator=ScriptedGenerator("same-token", "same-token", "fresh-token"),  # type: ignore[arg-type]
            clock=clock,
        )
        kwargs = {
            "identity_type": IdentityType.MAGIC_LINK,
            "policy": SecretPolicy.OPAQUE_TOKEN,
        }

        assert await issue(store, ada, **kwargs) == "same-token"
        assert await issue(store, bob, **kwargs) == "fresh-token"

        found = await store.find_by_secret(IdentityType.MAGIC_LINK, "fresh-token")
        assert found is not None
        assert found.user_id == bob


class TestLookupAndDelete:
    @pytest.mark.asyncio
    async def test_find_by_secret_is_type_scoped(self, identities, user_ids) -> None:
        [ada, _] = user_ids
        token = await issue(
            identities,
            ada,
            identity_type=IdentityType.MAGIC_LINK,
            policy=SecretPolicy.OPAQUE_TOKEN,
        )

        assert await identities.find_by_secret(IdentityType.MAGIC_LINK, token)
        assert await identities.find_by_secret(IdentityType.PHONE_2FA, token) is None

    @pytest.mark.asyncio
    async def test_delete_by_id_succeeds_once(self, identities, user_ids) -> None:
        [ada, _] = user_ids
        await issue(identities, ada)
        record = await identities.find_by_type(ada, IdentityType.PHONE_2FA)
        assert record is not None

        assert await identities.delete_by_id(record.id) is True
        assert await identities.delete_by_id(record.id) is False

    @pytest.mark.asyncio
    async def test_delete_by_type(self, identities, user_ids) -> None:
        [ada, bob] = user_ids
        await issue(identities, ada)
        await issue(identities, bob)

        assert await identities.delete_by_type(ada, IdentityType.PHONE_2FA) == 1
        assert await identities.find_by_type(ada, IdentityType.PHONE_2FA) is None
        assert await identities.find_by_type(bob, IdentityType.PHONE_2FA) is not None

    @pytest.mark.asyncio
    async def test_bulk_fetch(self, identities, user_ids) -> None:
        [ada, bob] = user_ids
        await issue(identities, ada)
        await issue(identities, ada, identity_type=IdentityType.PHONE_ACTIVATE)

        grouped = await identities.bulk_fetch_for_users([ada, bob, ada])

        assert set(grouped) == {ada}
        assert [i.type for i in grouped[ada]] == [
            IdentityType.PHONE_2FA,
            IdentityType.PHONE_ACTIVATE,
        ]


class TestPasswordIdentity:
    @pytest.mark.asyncio
    async def test_update_keeps_hash_when_none(self, identities, user_ids) -> None:
        [ada, _] = user_ids
        await identities.save_password_identity(ada, phone="+100", password_hash="h1")
        await identities.save_password_identity(ada, phone="+200", password_hash=None)

        record = await identities.find_by_type(ada, IdentityType.PHONE_PASSWORD)
        assert record is not None
        assert (record.secret, record.secret2) == ("+200", "h1")

    @pytest.mark.asyncio
    async def test_duplicate_phone_conflicts(self, identities, user_ids) -> None:
        [ada, bob] = user_ids
        await identities.save_password_identity(ada, phone="+100", password_hash="h")

        with pytest.raises(IdentityConflictError):
            await identities.save_password_identity(bob, phone="+100", password_hash="h")
        assert await identities.find_by_type(bob, IdentityType.PHONE_PASSWORD) is None
