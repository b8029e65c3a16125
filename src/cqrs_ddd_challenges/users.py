"""UserManager: user persistence with phone identity synchronization.

Saving a user is a two-step write: the user row, then the phone/password
identity. Both run inside one unit of work so a failed identity write never
leaves a user without a login identity behind.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from .config import ChallengeConfig
from .domain import utcnow
from .events import AuthEvent, AuthEventType, AuthSignals
from .exceptions import ChallengePersistenceError, IdentitySyncError, UnknownGroupError
from .hasher import PasswordHasher
from .messages import MessageCatalog

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .domain import User
    from .ports import IIdentityStore, IUserRepository
    from .uow import UnitOfWork

logger = logging.getLogger(__name__)


class UserManager:
    """
    Application-level user operations.

    Example:
        ```python
        manager = UserManager(users, identities, uow_factory=SQLAlchemyUnitOfWork.factory(session_factory))
        user_id = await manager.save(User(username="ada", phone="+15550001", password="s3cret"))
        await manager.add_to_default_group(user_id)
        ```
    """

    def __init__(
        self,
        users: IUserRepository,
        identities: IIdentityStore,
        *,
        uow_factory: Callable[[], UnitOfWork],
        config: ChallengeConfig | None = None,
        hasher: PasswordHasher | None = None,
        messages: MessageCatalog | None = None,
        signals: AuthSignals | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.users = users
        self.identities = identities
        self.uow_factory = uow_factory
        self.config = config or ChallengeConfig()
        self.hasher = hasher or PasswordHasher()
        self.messages = messages or MessageCatalog()
        self.signals = signals or AuthSignals()
        self._clock = clock

    async def save(self, user: User) -> int:
        """Insert or update ``user`` and its phone/password identity.

        A plaintext ``user.password`` is hashed; otherwise ``user.password_hash``
        is stored as is. Users without a phone get no credential identity.
        The passed object is not modified.

        Returns:
            The user id (newly assigned on insert).

        Raises:
            IdentitySyncError: If the identity write fails. The user write is
                rolled back with it.
        """
        async with self.uow_factory() as uow:
            user_id = await self.users.save(user, uow=uow)
            if user.phone is not None:
                password_hash = (
                    self.hasher.hash(user.password)
                    if user.password
                    else user.password_hash
                )
                try:
                    await self.identities.save_password_identity(
                        user_id,
                        phone=user.phone,
                        password_hash=password_hash,
                        uow=uow,
                    )
                except ChallengePersistenceError as e:
                    logger.error(
                        "Phone identity sync failed for user %s: %s", user_id, e
                    )
                    raise IdentitySyncError(
                        None if user.id is None else user_id, str(e)
                    ) from e
        logger.debug("Saved user %s", user_id)
        return user_id

    async def find_by_id(
        self, user_id: int, *, with_identities: bool = False
    ) -> User | None:
        return await self.users.find_by_id(user_id, with_identities=with_identities)

    async def find_many(
        self, user_ids: Iterable[int], *, with_identities: bool = False
    ) -> list[User]:
        return await self.users.find_many(user_ids, with_identities=with_identities)

    async def find_by_phone(self, phone: str) -> User | None:
        return await self.users.find_by_phone(phone)

    async def activate(self, user: User | int) -> None:
        """Mark the user active."""
        user_id = user if isinstance(user, int) else user.id
        if user_id is None:
            raise ValueError("Cannot activate an unsaved user")
        async with self.uow_factory() as uow:
            await self.users.set_active(user_id, True, uow=uow)
        logger.info("User %s activated", user_id)
        await self.signals.emit(
            AuthEvent(event_type=AuthEventType.USER_ACTIVATED, user_id=user_id)
        )

    async def add_to_default_group(self, user: User | int) -> None:
        """Add the user to the configured default group.

        Raises:
            UnknownGroupError: If the default group is not a known group.
        """
        group = self.config.default_group
        if group is None:
            return
        if group not in self.config.groups:
            raise UnknownGroupError(self.messages.get("unknownGroup", group))
        user_id = user if isinstance(user, int) else user.id
        if user_id is None:
            raise ValueError("Cannot add an unsaved user to a group")
        async with self.uow_factory() as uow:
            await self.users.add_to_group(user_id, group, uow=uow)

    async def update_active_date(self, user_id: int) -> None:
        async with self.uow_factory() as uow:
            await self.users.update_active_date(user_id, self._clock(), uow=uow)

    async def delete(self, user_id: int) -> bool:
        """Delete a user together with all of its identities."""
        async with self.uow_factory() as uow:
            deleted = await self.users.delete(user_id, uow=uow)
        if deleted:
            logger.info("User %s deleted", user_id)
        return deleted


__all__: list[str] = ["UserManager"]
