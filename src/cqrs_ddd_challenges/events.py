"""Authentication signals.

Challenge flows emit an AuthEvent whenever something worth observing
happens (failed login, magic login, activation ...). Handlers are plain
callables or coroutines registered per event type on AuthSignals.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from inspect import isawaitable
from typing import Any, Union

from .domain import utcnow

logger = logging.getLogger(__name__)


class AuthEventType(Enum):
    """Signals emitted by the challenge flows.

    Event naming follows the pattern: `auth.<resource>.<action>`
    """

    LOGIN_SUCCESS = "auth.login.success"
    LOGIN_FAILED = "auth.login.failed"
    MAGIC_LOGIN = "auth.login.magic"
    LOGOUT = "auth.logout"

    CHALLENGE_ISSUED = "auth.challenge.issued"
    CHALLENGE_VERIFIED = "auth.challenge.verified"
    CHALLENGE_FAILED = "auth.challenge.failed"

    USER_ACTIVATED = "auth.user.activated"


@dataclass(frozen=True)
class AuthEvent:
    """Something that happened during authentication.

    Attributes:
        event_type: What happened.
        user_id: Resolved user, when known.
        identity_type: Challenge type involved, if any.
        identifier: Value the attempt was keyed by (phone or raw token).
        ip_address: Client address, if known.
        user_agent: Client user agent, if known.
        reason: Message key describing a failure.
        timestamp: When the event occurred (UTC).
        metadata: Additional event-specific data.
    """

    event_type: AuthEventType
    user_id: int | None = None
    identity_type: str | None = None
    identifier: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    reason: str | None = None
    timestamp: datetime = field(default_factory=utcnow)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "user_id": self.user_id,
            "identity_type": self.identity_type,
            "identifier": self.identifier,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


SignalHandler = Callable[[AuthEvent], Union[Awaitable[None], None]]


class AuthSignals:
    """Registry and emitter of authentication signals.

    Handlers run in registration order. A failing handler is logged and its
    exception propagates to the emitter.
    """

    def __init__(self) -> None:
        self._handlers: dict[AuthEventType, list[SignalHandler]] = {}

    # ── Registration ─────────────────────────────────────────────

    def register(self, event_type: AuthEventType, handler: SignalHandler) -> None:
        """Register a handler for a specific event type."""
        handlers = self._handlers.setdefault(event_type, [])
        if handler not in handlers:
            handlers.append(handler)

    # ── Emitting ─────────────────────────────────────────────────

    async def emit(self, event: AuthEvent) -> None:
        """Invoke every handler registered for the event's type."""
        for handler in self._handlers.get(event.event_type, []):
            try:
                result = handler(event)
                if isawaitable(result):
                    await result
            except Exception:
                logger.exception(
                    "Error executing signal handler %s for %s",
                    getattr(handler, "__name__", type(handler).__name__),
                    event.event_type.value,
                )
                raise

    # ── Introspection ────────────────────────────────────────────

    def get_registered_handlers(self) -> dict[AuthEventType, list[SignalHandler]]:
        """Return all registered handlers (debugging utility)."""
        return {k: list(v) for k, v in self._handlers.items()}

    def clear(self) -> None:
        """Remove all handler registrations (testing utility)."""
        self._handlers.clear()


__all__: list[str] = ["AuthEvent", "AuthEventType", "AuthSignals", "SignalHandler"]
