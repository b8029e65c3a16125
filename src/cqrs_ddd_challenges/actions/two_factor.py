"""Phone 2FA: a numeric code gating the login of a known user."""

from __future__ import annotations

from typing import final

from ..domain import IdentityType
from .base import CodeChallengeAction


@final
class Phone2FAAction(CodeChallengeAction):
    """Second factor sent by SMS after the password check.

    Example:
        ```python
        action = Phone2FAAction(context)
        await session.set_pending_user(user)
        await action.issue(session)
        result = await action.verify(session, submitted_code)
        ```
    """

    identity_type = IdentityType.PHONE_2FA
    identity_name = "login"
    prompt_key = "need2FA"
    invalid_key = "invalid2FAToken"


__all__: list[str] = ["Phone2FAAction"]
