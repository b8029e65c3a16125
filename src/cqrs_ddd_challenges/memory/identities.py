"""InMemoryIdentityStore: dict-backed identity store."""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ..config import ChallengeConfig
from ..domain import Identity, IdentityType, utcnow
from ..exceptions import IdentityConflictError
from ..generator import SecretGenerator, SecretPolicy
from ..locking import KeyedLock, challenge_key
from ..ports import IIdentityStore
from .uow import register_undo

if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..uow import UnitOfWork

logger = logging.getLogger(__name__)

# Fresh secrets drawn before giving up on a (type, secret) collision.
_MAX_SECRET_ATTEMPTS = 5


class InMemoryIdentityStore(IIdentityStore):
    """In-memory implementation of IIdentityStore.

    Issuance is serialized per (user, type) with a KeyedLock so the
    delete-then-insert sequence never interleaves within one process.

    Note:
        Records are lost on restart. Not suitable for multi-worker use.
    """

    def __init__(
        self,
        config: ChallengeConfig | None = None,
        *,
        generator: SecretGenerator | None = None,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or ChallengeConfig()
        self.generator = generator or SecretGenerator(self.config)
        self.locks = locks or KeyedLock()
        self._clock = clock
        self._records: dict[int, Identity] = {}
        self._ids = itertools.count(1)

    # ── Internal helpers ─────────────────────────────────────────

    def _insert(self, identity: Identity, uow: UnitOfWork | None) -> Identity:
        for existing in self._records.values():
            if existing.type is identity.type and existing.secret == identity.secret:
                raise IdentityConflictError(
                    f"A {identity.type.value} identity with this secret already exists"
                )
        stored = identity.model_copy(update={"id": next(self._ids)})
        self._records[stored.id] = stored  # type: ignore[index]
        register_undo(uow, lambda: self._records.pop(stored.id, None))  # type: ignore[arg-type]
        return stored

    def _remove(self, identity_id: int, uow: UnitOfWork | None) -> bool:
        removed = self._records.pop(identity_id, None)
        if removed is None:
            return False
        register_undo(uow, lambda: self._records.__setitem__(identity_id, removed))
        return True

    def _secret_taken(self, identity_type: IdentityType, secret: str) -> bool:
        return any(
            r.type is identity_type and r.secret == secret
            for r in self._records.values()
        )

    # ── IIdentityStore ───────────────────────────────────────────

    async def delete_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,
    ) -> int:
        doomed = [
            r.id
            for r in self._records.values()
            if r.user_id == user_id and r.type is identity_type
        ]
        for identity_id in doomed:
            self._remove(identity_id, uow)  # type: ignore[arg-type]
        return len(doomed)

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
            await self.delete_by_type(user_id, identity_type, uow=uow)

            for _ in range(_MAX_SECRET_ATTEMPTS):
                secret = self.generator.generate(policy)
                if not self._secret_taken(identity_type, secret):
                    break
            else:
                raise IdentityConflictError(
                    f"Could not generate a unique {identity_type.value} secret"
                )

            now = self._clock()
            self._insert(
                Identity(
                    user_id=user_id,
                    type=identity_type,
                    secret=secret,
                    name=name,
                    extra=extra,
                    expires=now + timedelta(seconds=ttl_seconds),
                    created_at=now,
                ),
                uow,
            )
        logger.debug("Issued %s challenge for user %s", identity_type.value, user_id)
        return secret

    async def find_by_type(
        self,
        user_id: int,
        identity_type: IdentityType,
        *,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> Identity | None:
        matches = [
            r
            for r in self._records.values()
            if r.user_id == user_id and r.type is identity_type
        ]
        if not matches:
            return None
        return max(matches, key=lambda r: r.id or 0)

    async def find_by_secret(
        self,
        identity_type: IdentityType,
        secret: str,
        *,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> Identity | None:
        for record in self._records.values():
            if record.type is identity_type and record.secret == secret:
                return record
        return None

    async def delete_by_id(
        self, identity_id: int, *, uow: UnitOfWork | None = None
    ) -> bool:
        return self._remove(identity_id, uow)

    async def bulk_fetch_for_users(
        self,
        user_ids: Iterable[int],
        *,
        uow: UnitOfWork | None = None,  # noqa: ARG002
    ) -> dict[int, list[Identity]]:
        wanted = set(user_ids)
        grouped: dict[int, list[Identity]] = defaultdict(list)
        for record in sorted(self._records.values(), key=lambda r: r.id or 0):
            if record.user_id in wanted:
                grouped[record.user_id].append(record)
        return dict(grouped)

    async def save_password_identity(
        self,
        user_id: int,
        *,
        phone: str,
        password_hash: str | None,
        uow: UnitOfWork | None = None,
    ) -> None:
        for record in self._records.values():
            if (
                record.type is IdentityType.PHONE_PASSWORD
                and record.secret.lower() == phone.lower()
                and record.user_id != user_id
            ):
                raise IdentityConflictError("Phone number is already registered")

        existing = await self.find_by_type(user_id, IdentityType.PHONE_PASSWORD)
        if existing is None:
            self._insert(
                Identity(
                    user_id=user_id,
                    type=IdentityType.PHONE_PASSWORD,
                    secret=phone,
                    secret2=password_hash,
                    created_at=self._clock(),
                ),
                uow,
            )
            return

        updated = existing.model_copy(
            update={
                "secret": phone,
                "secret2": password_hash or existing.secret2,
                "updated_at": self._clock(),
            }
        )
        self._records[existing.id] = updated  # type: ignore[index]
        register_undo(
            uow,
            lambda: self._records.__setitem__(existing.id, existing),  # type: ignore[arg-type]
        )

    # ── Extras ───────────────────────────────────────────────────

    async def delete_all_for_user(
        self, user_id: int, *, uow: UnitOfWork | None = None
    ) -> int:
        """Remove every identity of a user (cascade on user deletion)."""
        doomed = [r.id for r in self._records.values() if r.user_id == user_id]
        for identity_id in doomed:
            self._remove(identity_id, uow)  # type: ignore[arg-type]
        return len(doomed)

    def count(
        self, user_id: int | None = None, identity_type: IdentityType | None = None
    ) -> int:
        """Number of stored records matching the filters (testing utility)."""
        return sum(
            1
            for r in self._records.values()
            if (user_id is None or r.user_id == user_id)
            and (identity_type is None or r.type is identity_type)
        )

    def all(self) -> list[Identity]:
        return list(self._records.values())

    def clear(self) -> None:
        self._records.clear()


__all__: list[str] = ["InMemoryIdentityStore"]
