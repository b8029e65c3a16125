"""Challenge actions: 2FA code, activation code and magic link."""

from __future__ import annotations

from typing import Union

from ..domain import IdentityType
from .activation import PhoneActivationAction
from .base import (
    ChallengeContext,
    IssueResult,
    RequestInfo,
    VerificationResult,
    require_pending_user,
)
from .magic_link import MagicLinkAction
from .two_factor import Phone2FAAction

ChallengeAction = Union[Phone2FAAction, PhoneActivationAction, MagicLinkAction]

_ACTIONS: dict[IdentityType, type[ChallengeAction]] = {
    IdentityType.PHONE_2FA: Phone2FAAction,
    IdentityType.PHONE_ACTIVATE: PhoneActivationAction,
    IdentityType.MAGIC_LINK: MagicLinkAction,
}


def action_for(
    identity_type: IdentityType | str, context: ChallengeContext
) -> ChallengeAction:
    """Build the action handling ``identity_type``.

    Raises:
        ValueError: If the type has no challenge action.
    """
    try:
        action_cls = _ACTIONS[IdentityType(identity_type)]
    except (KeyError, ValueError) as e:
        raise ValueError(f"No challenge action for {identity_type!r}") from e
    return action_cls(context)


__all__: list[str] = [
    "ChallengeAction",
    "ChallengeContext",
    "IssueResult",
    "MagicLinkAction",
    "Phone2FAAction",
    "PhoneActivationAction",
    "RequestInfo",
    "VerificationResult",
    "action_for",
    "require_pending_user",
]
