"""User-facing message catalog.

Messages are keyed by short identifiers (``invalid2FAToken``,
``magicLinkExpired`` ...) and formatted with positional ``{0}`` arguments.
Applications override or translate entries by passing their own mapping.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

DEFAULT_MESSAGES: dict[str, str] = {
    "invalidPhone": "Unable to locate a user with that phone number.",
    "unableSendPhoneToUser": (
        'Sorry, there was a problem sending the phone. We could not send an '
        'phone to "{0}".'
    ),
    "need2FA": "You must enter the verification code sent to your phone.",
    "needVerification": "Check your phone to complete account activation.",
    "needActivate": "You must complete your registration by confirming the code sent to your phone.",
    "invalid2FAToken": "The code was incorrect.",
    "invalidActivateToken": "The code was incorrect.",
    "expiredCode": "Sorry, the code has expired. Request a new one.",
    "magicTokenNotFound": "Unable to verify the link.",
    "magicLinkExpired": "Sorry, link has expired.",
    "magicLinkDisabled": "Use of MagicLink is currently not allowed.",
    "unknownGroup": "{0} is not a valid group.",
    "registerSuccess": "Welcome aboard!",
    "smsCode": "Your verification code is {0}.",
    "smsLink": "Use this link to sign in: {0}",
}


class MessageCatalog:
    """
    Localized message lookup with ``str.format`` style positional arguments.

    Unknown keys render as the key itself so a missing translation never
    breaks an authentication flow.

    Example:
        ```python
        messages = MessageCatalog({"invalid2FAToken": "Le code est incorrect."})
        messages.get("invalid2FAToken")
        messages.get("unknownGroup", "wizards")
        ```
    """

    def __init__(self, overrides: Mapping[str, str] | None = None) -> None:
        self._messages: dict[str, str] = dict(DEFAULT_MESSAGES)
        if overrides:
            self._messages.update(overrides)

    def get(self, key: str, *args: object) -> str:
        template = self._messages.get(key)
        if template is None:
            logger.warning("Missing message for key %s", key)
            return key
        try:
            return template.format(*args)
        except (IndexError, KeyError) as e:
            logger.error("Message %s could not be formatted: %s", key, e)
            return template

    def __contains__(self, key: object) -> bool:
        return key in self._messages


__all__: list[str] = ["DEFAULT_MESSAGES", "MessageCatalog"]
