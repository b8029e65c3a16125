"""Ports (protocols) the challenge flows depend on.

Applications either use the bundled adapters (``memory``, ``persistence``,
``delivery``) or implement these protocols themselves.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import datetime

    from .domain import Identity, IdentityType, User
    from .generator import SecretPolicy
    from .uow import UnitOfWork


@runtime_checkable
class IIdentityStore(Protocol):
    """Durable mapping of (user, type) to secret records.

    The store only persists and retrieves secrets; it never delivers them.
    Every method accepts an optional ``uow`` to join a caller's transaction.
    """

    async def delete_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,
    ) -> int:
        """Delete all identities of a type for a user.

        Returns:
            Number of records removed (0 when none existed).
        """
        ...

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
        """Replace the user's challenge of this type with a fresh one.

        Deletes existing records of ``identity_type``, generates a secret
        according to ``policy``, stores it with ``expires = now + ttl`` and
        returns the plaintext secret for delivery. Concurrent calls for the
        same (user, type) are serialized.
        """
        ...

    async def find_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,
    ) -> Identity | None:
        """Return the user's record of this type, or None."""
        ...

    async def find_by_secret(
        self,
        identity_type: IdentityType,
        secret: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> Identity | None:
        """Look a record up by its secret (magic links: user not yet known)."""
        ...

    async def delete_by_id(
        self, identity_id: int, *, uow: UnitOfWork | None = None
    ) -> bool:
        """Hard-delete one record.

        Returns:
            True only for the caller that actually removed the row, so
            concurrent consumers of the same challenge cannot both succeed.
        """
        ...

    async def bulk_fetch_for_users(
        self,
        user_ids: Iterable[int],
        *,
        uow: UnitOfWork | None = None,
    ) -> dict[int, list[Identity]]:
        """Fetch identities for many users at once.

        Users without identities are absent from the mapping.
        """
        ...

    async def save_password_identity(
        self,
        user_id: int,
        *,
        phone: str,
        password_hash: str | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        """Create or update the phone/password credential of a user."""
        ...


@runtime_checkable
class IUserRepository(Protocol):
    """User row persistence. Identity rows are handled by IIdentityStore."""

    async def find_by_id(
        self,
        user_id: int,
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,
    ) -> User | None:
        """Load a user with its phone and password hash populated.

        ``with_identities`` opts in to hydrating ``User.identities``.
        """
        ...

    async def find_many(
        self,
        user_ids: Iterable[int],
        *,
        with_identities: bool = False,
        uow: UnitOfWork | None = None,
    ) -> list[User]:
        """Load several users, hydrating identities in one batch if asked."""
        ...

    async def find_by_phone(
        self, phone: str, *, uow: UnitOfWork | None = None
    ) -> User | None:
        """Locate a user by the phone on its password identity (case-insensitive)."""
        ...

    async def save(self, user: User, *, uow: UnitOfWork | None = None) -> int:
        """Insert (``user.id is None``) or update the user row.

        Returns:
            The user id (newly assigned on insert).
        """
        ...

    async def set_active(
        self, user_id: int, active: bool, *, uow: UnitOfWork | None = None
    ) -> None:
        """Flip the activation flag."""
        ...

    async def update_active_date(
        self, user_id: int, when: datetime, *, uow: UnitOfWork | None = None
    ) -> None:
        """Record the user's last activity time."""
        ...

    async def add_to_group(
        self, user_id: int, group: str, *, uow: UnitOfWork | None = None
    ) -> None:
        """Add a group membership (no-op when already a member)."""
        ...

    async def delete(self, user_id: int, *, uow: UnitOfWork | None = None) -> bool:
        """Delete a user and, by cascade, all of its identities."""
        ...


@runtime_checkable
class IDeliveryGateway(Protocol):
    """Outbound channel (SMS) for challenge secrets.

    Implementations report the remote status code; anything outside 2xx is
    treated as a failed delivery. Transport errors are reported as a status
    code too, never raised.
    """

    async def send(
        self,
        destination: str,
        template_id: int,
        parameters: Mapping[str, str],
    ) -> int:
        """Send a templated message and return the gateway status code."""
        ...


@runtime_checkable
class ILoginAttemptStore(Protocol):
    """Append-only audit sink for login attempts."""

    async def record_login_attempt(
        self,
        id_type: IdentityType,
        identifier: str,
        success: bool,
        ip_address: str,
        user_agent: str | None = None,
        user_id: int | None = None,
    ) -> None:
        """Record one attempt."""
        ...


@runtime_checkable
class ISessionStore(Protocol):
    """Key/value storage backing browser sessions."""

    async def store(
        self, key: str, data: dict[str, Any], ttl: int | None = None
    ) -> None:
        """Store session data, optionally expiring after ``ttl`` seconds."""
        ...

    async def get(self, key: str) -> dict[str, Any] | None:
        """Return session data, or None if missing or expired."""
        ...

    async def delete(self, key: str) -> None:
        """Remove session data."""
        ...


def is_success(status_code: int) -> bool:
    """True for 2xx gateway status codes."""
    return 200 <= status_code < 300


__all__: list[str] = [
    "IDeliveryGateway",
    "IIdentityStore",
    "ILoginAttemptStore",
    "ISessionStore",
    "IUserRepository",
    "is_success",
]
