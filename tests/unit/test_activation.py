"""Tests for the phone activation challenge."""

from __future__ import annotations

from datetime import timedelta

import pytest

from cqrs_ddd_challenges import (
    AuthEventType,
    ChallengeExpiredError,
    ChallengeRejectedError,
    ChallengeState,
    FlowStateError,
    IdentityType,
    PhoneActivationAction,
    User,
)


@pytest.fixture
def action(context) -> PhoneActivationAction:
    return PhoneActivationAction(context)


@pytest.fixture
async def newcomer(manager, session) -> User:
    """Freshly registered, inactive user waiting in the session."""
    user_id = await manager.save(
        User(username="grace", phone="+15550009", password="pw", active=False)
    )
    user = await manager.find_by_id(user_id)
    await session.set_pending_user(user)
    return user


class TestActivation:
    @pytest.mark.asyncio
    async def test_issue_uses_activation_lifetime(
        self, action, session, newcomer, identities, gateway, clock
    ) -> None:
        result = await action.issue(session)

        record = await identities.find_by_type(newcomer.id, IdentityType.PHONE_ACTIVATE)
        assert record is not None
        assert record.expires == clock.now + timedelta(seconds=3600)
        assert record.name == "register"
        assert record.extra == result.message
        assert record.secret == gateway.last.parameters["Code"]
        assert await session.pending_action() is IdentityType.PHONE_ACTIVATE

    @pytest.mark.asyncio
    async def test_correct_code_activates_and_logs_in(
        self, action, session, newcomer, users, gateway, events
    ) -> None:
        await action.issue(session)
        result = await action.verify(session, gateway.last.parameters["Code"])

        assert result.state is ChallengeState.VERIFIED
        assert result.user_id == newcomer.id
        refreshed = await users.find_by_id(newcomer.id)
        assert refreshed.active is True
        assert await session.logged_in()
        assert AuthEventType.USER_ACTIVATED in [e.event_type for e in events]

    @pytest.mark.asyncio
    async def test_wrong_code_leaves_user_inactive(
        self, action, session, newcomer, users
    ) -> None:
        await action.issue(session)
        with pytest.raises(ChallengeRejectedError) as exc_info:
            await action.verify(session, "not-a-code")

        assert exc_info.value.message_key == "invalidActivateToken"
        assert (await users.find_by_id(newcomer.id)).active is False

    @pytest.mark.asyncio
    async def test_expired_code_then_fresh_issue(
        self, action, session, newcomer, identities, gateway, clock
    ) -> None:
        await action.issue(session)
        old_code = gateway.last.parameters["Code"]
        old_record = await identities.find_by_type(
            newcomer.id, IdentityType.PHONE_ACTIVATE
        )
        clock.advance(3601)

        with pytest.raises(ChallengeExpiredError):
            await action.verify(session, old_code)

        await action.issue(session)
        new_record = await identities.find_by_type(
            newcomer.id, IdentityType.PHONE_ACTIVATE
        )
        assert new_record is not None
        assert new_record.id != old_record.id
        assert new_record.secret == gateway.last.parameters["Code"]
        assert new_record.secret != old_code
        assert not new_record.is_expired(clock.now)

    @pytest.mark.asyncio
    async def test_requires_phone(self, action, session, manager) -> None:
        user_id = await manager.save(User(username="nophone"))
        await session.set_pending_user(await manager.find_by_id(user_id))
        with pytest.raises(FlowStateError):
            await action.issue(session)


def test_get_type(context) -> None:
    assert PhoneActivationAction(context).get_type() is IdentityType.PHONE_ACTIVATE
