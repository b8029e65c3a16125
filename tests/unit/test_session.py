"""Tests for pending-login session state."""

from __future__ import annotations

import pytest

from cqrs_ddd_challenges import (
    AuthSession,
    Identity,
    IdentityType,
    InMemorySessionStore,
    SecretPolicy,
    User,
)


class TestInMemorySessionStore:
    @pytest.mark.asyncio
    async def test_store_get_delete(self, session_store: InMemorySessionStore) -> None:
        await session_store.store("k", {"a": 1})
        assert await session_store.get("k") == {"a": 1}
        assert await session_store.exists("k")

        await session_store.delete("k")
        assert await session_store.get("k") is None
        assert not await session_store.exists("k")

    @pytest.mark.asyncio
    async def test_returned_data_is_a_copy(
        self, session_store: InMemorySessionStore
    ) -> None:
        await session_store.store("k", {"a": 1})
        data = await session_store.get("k")
        assert data is not None
        data["a"] = 2
        assert await session_store.get("k") == {"a": 1}


class TestPendingUser:
    @pytest.mark.asyncio
    async def test_set_and_get(self, session: AuthSession, user: User) -> None:
        await session.set_pending_user(user, IdentityType.PHONE_2FA, "enter code")

        pending = await session.get_pending_user()
        assert pending is not None
        assert pending.id == user.id
        assert await session.pending_action() is IdentityType.PHONE_2FA
        assert await session.pending_message() == "enter code"
        assert not await session.logged_in()

    @pytest.mark.asyncio
    async def test_new_pending_user_replaces_old(
        self, session: AuthSession, user: User, manager
    ) -> None:
        other_id = await manager.save(User(username="bob", phone="+15550002"))
        other = await manager.find_by_id(other_id)

        await session.set_pending_user(user, IdentityType.PHONE_2FA)
        await session.set_pending_user(other)

        pending = await session.get_pending_user()
        assert pending is not None
        assert pending.id == other_id
        assert await session.pending_action() is None

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, make_session, user: User) -> None:
        first, second = make_session("a"), make_session("b")
        await first.set_pending_user(user)

        assert await second.get_pending_user() is None
        await second.cancel()
        assert await first.get_pending_user() is not None

    @pytest.mark.asyncio
    async def test_unsaved_user_rejected(self, session: AuthSession) -> None:
        with pytest.raises(ValueError):
            await session.set_pending_user(User(username="ghost"))

    def test_empty_session_id_rejected(self, session_store, users, identities) -> None:
        with pytest.raises(ValueError):
            AuthSession("", store=session_store, users=users, identities=identities)


class TestLoginTransitions:
    @pytest.mark.asyncio
    async def test_complete_login_promotes_and_clears_pending(
        self, session: AuthSession, user: User, users, clock
    ) -> None:
        await session.set_pending_user(user, IdentityType.PHONE_2FA)
        await session.complete_login(user.id)

        assert await session.logged_in()
        assert await session.get_pending_user() is None
        current = await session.get_user()
        assert current is not None
        assert current.id == user.id
        assert current.last_active == clock.now

    @pytest.mark.asyncio
    async def test_cancel_clears_pending_only(
        self, session: AuthSession, user: User
    ) -> None:
        await session.set_pending_user(user)
        await session.cancel()
        assert await session.get_pending_user() is None

        await session.complete_login(user.id)
        await session.cancel()
        assert await session.logged_in()

    @pytest.mark.asyncio
    async def test_logout_forgets_everything(
        self, session: AuthSession, user: User, session_store
    ) -> None:
        await session.complete_login(user.id)
        await session.mark_magic_login()
        await session.logout()

        assert not await session.logged_in()
        assert not await session.is_magic_login()
        assert await session_store.get(session.key) is None


class TestOutstandingAction:
    @pytest.mark.asyncio
    async def test_none_without_challenges(
        self, session: AuthSession, user: User
    ) -> None:
        assert await session.outstanding_action(user.id) is None
        assert not await session.has_outstanding_action(user.id)

    @pytest.mark.asyncio
    async def test_detects_issued_code(
        self, session: AuthSession, user: User, identities
    ) -> None:
        await identities.create_challenge(
            user.id,
            IdentityType.PHONE_ACTIVATE,
            policy=SecretPolicy.NUMERIC_CODE,
            ttl_seconds=60,
        )
        assert await session.outstanding_action(user.id) is IdentityType.PHONE_ACTIVATE
        assert await session.has_outstanding_action(user.id)

    @pytest.mark.asyncio
    async def test_magic_link_is_not_an_action(
        self, session: AuthSession, user: User, identities
    ) -> None:
        await identities.create_challenge(
            user.id,
            IdentityType.MAGIC_LINK,
            policy=SecretPolicy.OPAQUE_TOKEN,
            ttl_seconds=60,
        )
        assert not await session.has_outstanding_action(user.id)


class TestCheckAction:
    identity = Identity(user_id=1, type=IdentityType.PHONE_2FA, secret="123456")

    def test_match(self) -> None:
        assert AuthSession.check_action(self.identity, "123456")

    @pytest.mark.parametrize("submitted", ["123457", "12345", " 123456", "", None])
    def test_mismatch(self, submitted: str | None) -> None:
        assert not AuthSession.check_action(self.identity, submitted)

    def test_missing_identity(self) -> None:
        assert not AuthSession.check_action(None, "123456")
