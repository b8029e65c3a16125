"""Magic link: passwordless login through a single-use token."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, final

from ..domain import IdentityType
from ..events import AuthEventType
from ..exceptions import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    InvalidContactError,
    MagicLinkDisabledError,
)
from ..generator import SecretPolicy
from .base import ChallengeActionBase, IssueResult, RequestInfo, VerificationResult

if TYPE_CHECKING:
    from ..session import AuthSession

logger = logging.getLogger(__name__)


@final
class MagicLinkAction(ChallengeActionBase):
    """
    Login link delivered to a phone number.

    Issuing needs no session: an anonymous visitor supplies a phone number.
    Verifying looks the token up by value and deletes it at once, so a link
    works at most one time whatever the outcome.

    Example:
        ```python
        action = MagicLinkAction(context)
        await action.issue("+15550001")
        result = await action.verify(session, token, request=RequestInfo("10.0.0.1"))
        if result.pending_action:
            ...  # route the user to the 2FA / activation form
        ```
    """

    identity_type = IdentityType.MAGIC_LINK

    def _ensure_enabled(self) -> None:
        ctx = self.context
        if not ctx.config.allow_magic_link_logins:
            logger.warning("Magic link used while magic-link logins are disabled")
            raise MagicLinkDisabledError(
                ctx.messages.get("magicLinkDisabled"),
                message_key="magicLinkDisabled",
                identity_type=self.identity_type,
            )

    async def issue(
        self, phone: str, *, request: RequestInfo | None = None
    ) -> IssueResult:
        """Send a login link to the account registered for ``phone``.

        Raises:
            MagicLinkDisabledError: Magic-link logins are switched off.
            InvalidContactError: Malformed or unknown phone number. No
                identity is created.
            DeliveryFailedError: The gateway refused the message.
        """
        ctx = self.context
        self._ensure_enabled()

        phone = (phone or "").strip()
        user = None
        if re.fullmatch(ctx.config.phone_pattern, phone):
            user = await ctx.users.find_by_phone(phone)
        if user is None or user.id is None or not user.phone:
            logger.warning("Magic link requested for an unknown phone number")
            raise InvalidContactError(
                ctx.messages.get("invalidPhone"),
                message_key="invalidPhone",
                identity_type=self.identity_type,
            )

        token = await ctx.identities.create_challenge(
            user.id,
            self.identity_type,
            policy=SecretPolicy.OPAQUE_TOKEN,
            ttl_seconds=ctx.config.magic_link_lifetime_seconds,
        )
        link = ctx.config.magic_link_url.format(token=token)
        await self._deliver(
            user.id,
            token,
            user.phone,
            ctx.config.magic_link_template_id,
            {"Link": link},
        )
        await self._emit(
            AuthEventType.CHALLENGE_ISSUED,
            user_id=user.id,
            ip_address=request.ip_address if request else None,
            user_agent=request.user_agent if request else None,
        )
        return IssueResult(
            identity_type=self.identity_type,
            user_id=user.id,
            destination=user.phone,
        )

    async def verify(
        self,
        session: AuthSession,
        token: str | None,
        *,
        request: RequestInfo | None = None,
    ) -> VerificationResult:
        """Consume ``token`` and log its owner in.

        Raises:
            MagicLinkDisabledError: Magic-link logins are switched off. The
                token is left untouched.
            ChallengeNotFoundError: Unknown, already used or empty token.
            ChallengeExpiredError: The link outlived its lifetime.
        """
        ctx = self.context
        self._ensure_enabled()
        request = request or RequestInfo()
        token = token or ""

        identity = None
        if token:
            identity = await ctx.identities.find_by_secret(self.identity_type, token)
        if identity is not None and not await ctx.identities.delete_by_id(
            identity.id  # type: ignore[arg-type]
        ):
            # Another request consumed it between lookup and delete.
            identity = None

        user = None
        if identity is not None:
            user = await ctx.users.find_by_id(identity.user_id)

        if identity is None or user is None:
            await self._reject(token, request, None, "magicTokenNotFound")
            raise ChallengeNotFoundError(
                ctx.messages.get("magicTokenNotFound"),
                message_key="magicTokenNotFound",
                identity_type=self.identity_type,
            )

        assert user.id is not None
        if identity.is_expired(ctx.clock()):
            await self._reject(token, request, user.id, "magicLinkExpired")
            raise ChallengeExpiredError(
                ctx.messages.get("magicLinkExpired"),
                message_key="magicLinkExpired",
                identity_type=self.identity_type,
            )

        action = await session.outstanding_action(user.id)
        if action is not None:
            prompt_key = (
                "needActivate" if action is IdentityType.PHONE_ACTIVATE else "need2FA"
            )
            await session.set_pending_user(
                user, action=action, message=ctx.messages.get(prompt_key)
            )
            logger.info(
                "Magic link for user %s deferred to %s", user.id, action.value
            )
            return VerificationResult(
                identity_type=self.identity_type,
                user_id=user.id,
                pending_action=action,
            )

        await session.complete_login(user.id)
        await self._record_attempt(token, True, request, user.id)
        await session.mark_magic_login()
        await self._emit(
            AuthEventType.MAGIC_LOGIN,
            user_id=user.id,
            ip_address=request.ip_address,
            user_agent=request.user_agent,
        )
        return VerificationResult(identity_type=self.identity_type, user_id=user.id)

    async def _reject(
        self,
        token: str,
        request: RequestInfo,
        user_id: int | None,
        reason: str,
    ) -> None:
        logger.warning("Magic link login failed: %s", reason)
        await self._record_attempt(token, False, request, user_id)
        await self._emit(
            AuthEventType.LOGIN_FAILED,
            user_id=user_id,
            identifier=token,
            ip_address=request.ip_address,
            user_agent=request.user_agent,
            reason=reason,
        )


__all__: list[str] = ["MagicLinkAction"]
