"""Phone activation: a numeric code confirming a new account's phone."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, final

from ..domain import IdentityType
from ..events import AuthEventType
from .base import CodeChallengeAction

if TYPE_CHECKING:
    from ..domain import User

logger = logging.getLogger(__name__)


@final
class PhoneActivationAction(CodeChallengeAction):
    """Activation code sent right after registration.

    A correct code flips the user to active before the login completes.
    Activation codes live longer than 2FA codes
    (``ChallengeConfig.activation_ttl_seconds``).
    """

    identity_type = IdentityType.PHONE_ACTIVATE
    identity_name = "register"
    prompt_key = "needVerification"
    invalid_key = "invalidActivateToken"

    @property
    def ttl_seconds(self) -> int:
        return self.context.config.activation_ttl_seconds

    async def _on_verified(self, user: User) -> None:
        assert user.id is not None
        await self.context.users.set_active(user.id, True)
        logger.info("User %s activated", user.id)
        await self._emit(AuthEventType.USER_ACTIVATED, user_id=user.id)


__all__: list[str] = ["PhoneActivationAction"]
