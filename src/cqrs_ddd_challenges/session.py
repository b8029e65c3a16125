"""Pending-login session state.

A browser session that has passed the primary credential check but not yet
a secondary challenge holds a *pending* user. Verifying the challenge
promotes the session to fully authenticated via ``complete_login``.

State is kept in an ISessionStore under a key derived from the session id,
so two sessions never observe each other's pending user.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from .domain import ACTION_TYPES, IdentityType, utcnow
from .ports import ISessionStore

if TYPE_CHECKING:
    from .domain import Identity, User
    from .ports import IIdentityStore, IUserRepository

logger = logging.getLogger(__name__)


class InMemorySessionStore(ISessionStore):
    """In-memory session store for development and testing only.

    WARNING: data lives in a local dictionary. It will NOT work with more
    than one worker process.

    Example:
        ```python
        session_store = InMemorySessionStore()
        await session_store.store("auth:abc", {"pending_user_id": 7}, ttl=300)
        data = await session_store.get("auth:abc")
        ```
    """

    def __init__(self) -> None:
        self._store: dict[str, tuple[dict[str, Any], datetime | None]] = {}

    async def store(
        self, key: str, data: dict[str, Any], ttl: int | None = None
    ) -> None:
        expires_at: datetime | None = None
        if ttl is not None and ttl > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl)
        self._store[key] = (dict(data), expires_at)

    async def get(self, key: str) -> dict[str, Any] | None:
        entry = self._store.get(key)
        if entry is None:
            return None

        data, expires_at = entry
        if expires_at is not None and datetime.now(timezone.utc) > expires_at:
            del self._store[key]
            return None

        return dict(data)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    def clear_all(self) -> None:
        """Clear all session data (testing utility)."""
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class AuthSession:
    """
    Authentication state of one browser session.

    At most one user is pending per session; setting a new pending user
    replaces the previous one. Pending state is cleared on full login,
    cancel and logout.

    Example:
        ```python
        session = AuthSession("sess-1", store=store, users=users, identities=identities)
        await session.set_pending_user(user, action=IdentityType.PHONE_2FA)
        ...
        await session.complete_login(user.id)
        assert await session.logged_in()
        ```
    """

    KEY_PREFIX = "auth:"

    def __init__(
        self,
        session_id: str,
        *,
        store: ISessionStore,
        users: IUserRepository,
        identities: IIdentityStore,
        ttl: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if not session_id:
            raise ValueError("session_id must not be empty")
        self.session_id = session_id
        self._store = store
        self._users = users
        self._identities = identities
        self._ttl = ttl
        self._clock = clock

    @property
    def key(self) -> str:
        return f"{self.KEY_PREFIX}{self.session_id}"

    async def _load(self) -> dict[str, Any]:
        return await self._store.get(self.key) or {}

    async def _save(self, state: dict[str, Any]) -> None:
        await self._store.store(self.key, state, ttl=self._ttl)

    # ── Pending user ─────────────────────────────────────────────

    async def set_pending_user(
        self,
        user: User,
        action: IdentityType | None = None,
        message: str | None = None,
    ) -> None:
        """Mark ``user`` as having passed primary authentication only.

        Args:
            user: Persisted user (must have an id).
            action: Challenge type the user must still complete, if known.
            message: Prompt to show while the challenge is pending.
        """
        if user.id is None:
            raise ValueError("Pending user must be persisted")
        state = await self._load()
        if state.get("pending_user_id") not in (None, user.id):
            logger.info(
                "Replacing pending user %s with %s in session",
                state["pending_user_id"],
                user.id,
            )
        state.pop("user_id", None)
        state.pop("magic_login", None)
        state["pending_user_id"] = user.id
        state["pending_action"] = action.value if action is not None else None
        state["pending_message"] = message
        await self._save(state)

    async def get_pending_user(self) -> User | None:
        state = await self._load()
        user_id = state.get("pending_user_id")
        if user_id is None:
            return None
        return await self._users.find_by_id(user_id)

    async def pending_action(self) -> IdentityType | None:
        """Challenge type recorded with the pending user, if any."""
        value = (await self._load()).get("pending_action")
        return IdentityType(value) if value else None

    async def pending_message(self) -> str | None:
        return (await self._load()).get("pending_message")

    # ── Outstanding actions ──────────────────────────────────────

    async def outstanding_action(self, user_id: int) -> IdentityType | None:
        """First 2FA/activation challenge still on record for the user."""
        for identity_type in ACTION_TYPES:
            if await self._identities.find_by_type(user_id, identity_type):
                return identity_type
        return None

    async def has_outstanding_action(self, user_id: int) -> bool:
        return await self.outstanding_action(user_id) is not None

    @staticmethod
    def check_action(identity: Identity | None, submitted: str | None) -> bool:
        """Constant-time comparison of a submission with the stored secret.

        Exact equality only: no trimming or case folding.
        """
        if identity is None or not submitted:
            return False
        return secrets.compare_digest(
            identity.secret.encode("utf-8"), submitted.encode("utf-8")
        )

    # ── Login transitions ────────────────────────────────────────

    async def complete_login(self, user_id: int) -> None:
        """Promote the session to fully authenticated for ``user_id``."""
        state = await self._load()
        state.pop("pending_user_id", None)
        state.pop("pending_action", None)
        state.pop("pending_message", None)
        state["user_id"] = user_id
        state["logged_in_at"] = self._clock().isoformat()
        await self._save(state)
        await self._users.update_active_date(user_id, self._clock())
        logger.info("User %s logged in", user_id)

    async def mark_magic_login(self) -> None:
        state = await self._load()
        state["magic_login"] = True
        await self._save(state)

    async def is_magic_login(self) -> bool:
        return bool((await self._load()).get("magic_login"))

    async def get_user(self) -> User | None:
        """Fully authenticated user, or None."""
        user_id = (await self._load()).get("user_id")
        if user_id is None:
            return None
        return await self._users.find_by_id(user_id)

    async def logged_in(self) -> bool:
        return (await self._load()).get("user_id") is not None

    async def cancel(self) -> None:
        """Abandon a pending login. A completed login is left alone."""
        state = await self._load()
        if "pending_user_id" not in state:
            return
        state.pop("pending_user_id", None)
        state.pop("pending_action", None)
        state.pop("pending_message", None)
        if state:
            await self._save(state)
        else:
            await self._store.delete(self.key)

    async def logout(self) -> None:
        """Forget everything about this session."""
        user_id = (await self._load()).get("user_id")
        await self._store.delete(self.key)
        if user_id is not None:
            logger.info("User %s logged out", user_id)


__all__: list[str] = ["AuthSession", "InMemorySessionStore"]
