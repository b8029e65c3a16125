"""Tests for authentication signals and the message catalog."""

from __future__ import annotations

import pytest

from cqrs_ddd_challenges import AuthEvent, AuthEventType, AuthSignals, MessageCatalog


class TestAuthSignals:
    @pytest.mark.asyncio
    async def test_sync_and_async_handlers(self) -> None:
        signals = AuthSignals()
        seen: list[str] = []

        def sync_handler(event: AuthEvent) -> None:
            seen.append(f"sync:{event.user_id}")

        async def async_handler(event: AuthEvent) -> None:
            seen.append(f"async:{event.user_id}")

        signals.register(AuthEventType.MAGIC_LOGIN, sync_handler)
        signals.register(AuthEventType.MAGIC_LOGIN, async_handler)
        signals.register(AuthEventType.MAGIC_LOGIN, sync_handler)

        await signals.emit(AuthEvent(AuthEventType.MAGIC_LOGIN, user_id=3))
        await signals.emit(AuthEvent(AuthEventType.LOGOUT, user_id=3))

        assert seen == ["sync:3", "async:3"]

    @pytest.mark.asyncio
    async def test_handler_errors_propagate(self) -> None:
        signals = AuthSignals()

        def broken(event: AuthEvent) -> None:
            raise RuntimeError("handler failed")

        signals.register(AuthEventType.LOGIN_FAILED, broken)
        with pytest.raises(RuntimeError):
            await signals.emit(AuthEvent(AuthEventType.LOGIN_FAILED))

    def test_introspection_and_clear(self) -> None:
        signals = AuthSignals()
        signals.register(AuthEventType.LOGOUT, print)
        assert signals.get_registered_handlers() == {AuthEventType.LOGOUT: [print]}
        signals.clear()
        assert signals.get_registered_handlers() == {}

    def test_event_to_dict(self) -> None:
        event = AuthEvent(AuthEventType.LOGIN_FAILED, identifier="tok", reason="x")
        data = event.to_dict()
        assert data["event_type"] == "auth.login.failed"
        assert data["identifier"] == "tok"
        assert data["reason"] == "x"


class TestMessageCatalog:
    def test_defaults(self) -> None:
        messages = MessageCatalog()
        assert messages.get("invalid2FAToken") == "The code was incorrect."
        assert messages.get("magicLinkExpired") == "Sorry, link has expired."
        assert messages.get("unknownGroup", "wizards") == "wizards is not a valid group."

    def test_phone_placeholder(self) -> None:
        text = MessageCatalog().get("unableSendPhoneToUser", "+15550001")
        assert '"+15550001"' in text

    def test_overrides(self) -> None:
        messages = MessageCatalog({"invalid2FAToken": "Le code est incorrect."})
        assert messages.get("invalid2FAToken") == "Le code est incorrect."
        assert messages.get("magicTokenNotFound") == "Unable to verify the link."

    def test_missing_key_renders_key(self) -> None:
        messages = MessageCatalog()
        assert "nope" not in messages
        assert messages.get("nope") == "nope"

    def test_missing_argument_returns_template(self) -> None:
        assert MessageCatalog().get("unknownGroup") == "{0} is not a valid group."
