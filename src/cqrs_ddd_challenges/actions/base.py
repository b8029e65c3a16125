"""Shared plumbing for challenge actions.

Every action receives its collaborators through a ChallengeContext and the
browser session through an AuthSession argument; none of them reach for
global state.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, ClassVar

from ..config import ChallengeConfig
from ..domain import ChallengeState, IdentityType, utcnow
from ..events import AuthEvent, AuthEventType, AuthSignals
from ..exceptions import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeRejectedError,
    DeliveryFailedError,
    FlowStateError,
    InvalidContactError,
)
from ..generator import SecretPolicy
from ..messages import MessageCatalog
from ..ports import (
    IDeliveryGateway,
    IIdentityStore,
    ILoginAttemptStore,
    IUserRepository,
    is_success,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ..domain import User
    from ..session import AuthSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestInfo:
    """Client details recorded with login attempts."""

    ip_address: str = "0.0.0.0"  # noqa: S104
    user_agent: str | None = None


@dataclass
class ChallengeContext:
    """Collaborators shared by all challenge actions."""

    users: IUserRepository
    identities: IIdentityStore
    gateway: IDeliveryGateway
    login_attempts: ILoginAttemptStore
    config: ChallengeConfig = field(default_factory=ChallengeConfig)
    signals: AuthSignals = field(default_factory=AuthSignals)
    messages: MessageCatalog = field(default_factory=MessageCatalog)
    clock: Callable[[], datetime] = utcnow


@dataclass(frozen=True)
class IssueResult:
    """Outcome of a successful issuance.

    Attributes:
        identity_type: Challenge type that was issued.
        user_id: User the challenge belongs to.
        destination: Where the secret was delivered.
        message: Prompt to show while the challenge is pending.
    """

    identity_type: IdentityType
    user_id: int
    destination: str
    message: str | None = None
    state: ChallengeState = ChallengeState.ISSUED


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of a successful verification.

    ``pending_action`` is set when a magic link resolved to a user who must
    still complete a 2FA or activation challenge; the session then holds a
    pending user instead of a full login.
    """

    identity_type: IdentityType
    user_id: int
    pending_action: IdentityType | None = None
    state: ChallengeState = ChallengeState.VERIFIED

    @property
    def logged_in(self) -> bool:
        return self.pending_action is None


async def require_pending_user(session: AuthSession) -> User:
    """Return the session's pending user.

    Raises:
        FlowStateError: If the session has no pending user.
    """
    user = await session.get_pending_user()
    if user is None or user.id is None:
        raise FlowStateError(
            f"No pending login user in session {session.session_id!r}; "
            "primary authentication must run first"
        )
    return user


class ChallengeActionBase:
    """Delivery, auditing and signalling helpers for the concrete actions."""

    identity_type: ClassVar[IdentityType]

    def __init__(self, context: ChallengeContext) -> None:
        self.context = context

    def get_type(self) -> IdentityType:
        return self.identity_type

    async def _discard(self, user_id: int, secret: str) -> None:
        """Delete the record holding ``secret``, if it still exists.

        A concurrent re-issue may already have replaced it; that newer record
        is left alone.
        """
        identities = self.context.identities
        identity = await identities.find_by_secret(self.identity_type, secret)
        if identity is None or identity.user_id != user_id:
            return
        await identities.delete_by_id(identity.id)  # type: ignore[arg-type]

    async def _deliver(
        self,
        user_id: int,
        secret: str,
        destination: str,
        template_id: int,
        parameters: Mapping[str, str],
    ) -> None:
        """Hand the secret to the gateway, invalidating it on failure.

        Raises:
            DeliveryFailedError: If the gateway reports a non-2xx status.
        """
        ctx = self.context
        try:
            status = await ctx.gateway.send(destination, template_id, parameters)
        except Exception:
            await self._discard(user_id, secret)
            raise

        if is_success(status):
            logger.info(
                "Delivered %s challenge for user %s (status %s)",
                self.identity_type.value,
                user_id,
                status,
            )
            return

        await self._discard(user_id, secret)
        logger.error(
            "Gateway refused %s challenge for user %s (status %s)",
            self.identity_type.value,
            user_id,
            status,
        )
        raise DeliveryFailedError(
            ctx.messages.get("unableSendPhoneToUser", destination),
            destination=destination,
            status_code=status,
            fallback_route=ctx.config.delivery_fallback_route,
        )

    async def _record_attempt(
        self,
        identifier: str,
        success: bool,
        request: RequestInfo,
        user_id: int | None = None,
    ) -> None:
        """Write to the audit sink. Failures are logged, never raised."""
        try:
            await self.context.login_attempts.record_login_attempt(
                self.identity_type,
                identifier,
                success,
                request.ip_address,
                request.user_agent,
                user_id,
            )
        except Exception:  # noqa: BLE001
            logger.exception(
                "Failed to record %s login attempt", self.identity_type.value
            )

    async def _emit(self, event_type: AuthEventType, **fields: Any) -> None:
        await self.context.signals.emit(
            AuthEvent(
                event_type=event_type,
                identity_type=self.identity_type.value,
                **fields,
            )
        )


class CodeChallengeAction(ChallengeActionBase):
    """Numeric code sent to the pending user's phone.

    Subclasses pick the identity type, the annotations stored with the
    record and what happens to the user once the code is accepted.
    """

    identity_name: ClassVar[str]
    prompt_key: ClassVar[str]
    invalid_key: ClassVar[str]

    @property
    def ttl_seconds(self) -> int:
        return self.context.config.code_ttl_seconds

    async def issue(
        self, session: AuthSession, *, phone: str | None = None
    ) -> IssueResult:
        """Create a code for the pending user and send it.

        Args:
            session: Session holding the pending user.
            phone: Phone number submitted by the user, if the form asks for
                one. It must match the number on the account.

        Raises:
            FlowStateError: No pending user, or the user has no phone.
            InvalidContactError: ``phone`` differs from the user's phone.
            DeliveryFailedError: The gateway refused the message.
        """
        ctx = self.context
        user = await require_pending_user(session)
        if not user.phone:
            raise FlowStateError(
                f"User {user.id} has no phone number for a "
                f"{self.identity_type.value} challenge"
            )
        if phone is not None and phone != user.phone:
            logger.warning("Submitted phone does not match user %s", user.id)
            raise InvalidContactError(
                ctx.messages.get("invalidPhone"),
                message_key="invalidPhone",
                identity_type=self.identity_type,
            )

        assert user.id is not None
        prompt = ctx.messages.get(self.prompt_key)
        code = await ctx.identities.create_challenge(
            user.id,
            self.identity_type,
            policy=SecretPolicy.NUMERIC_CODE,
            ttl_seconds=self.ttl_seconds,
            name=self.identity_name,
            extra=prompt,
        )
        await self._deliver(
            user.id, code, user.phone, ctx.config.code_template_id, {"Code": code}
        )
        await session.set_pending_user(user, action=self.identity_type, message=prompt)
        await self._emit(AuthEventType.CHALLENGE_ISSUED, user_id=user.id)
        return IssueResult(
            identity_type=self.identity_type,
            user_id=user.id,
            destination=user.phone,
            message=prompt,
        )

    async def verify(
        self, session: AuthSession, submitted: str | None
    ) -> VerificationResult:
        """Check a submitted code and complete the login on success.

        An expired record is reported as expired even when the code matches.
        A wrong code leaves the record in place for another try.

        Raises:
            FlowStateError: No pending user.
            ChallengeNotFoundError: No code on record (or it was consumed
                concurrently).
            ChallengeExpiredError: The code outlived its TTL.
            ChallengeRejectedError: The code does not match.
        """
        ctx = self.context
        user = await require_pending_user(session)
        assert user.id is not None
        identity = await ctx.identities.find_by_type(user.id, self.identity_type)

        if identity is None:
            await self._fail(user.id, self.invalid_key)
            raise ChallengeNotFoundError(
                ctx.messages.get(self.invalid_key),
                message_key=self.invalid_key,
                identity_type=self.identity_type,
            )

        if identity.is_expired(ctx.clock()):
            await ctx.identities.delete_by_id(identity.id)  # type: ignore[arg-type]
            await self._fail(user.id, "expiredCode")
            raise ChallengeExpiredError(
                ctx.messages.get("expiredCode"),
                message_key="expiredCode",
                identity_type=self.identity_type,
            )

        if not session.check_action(identity, submitted):
            await self._fail(user.id, self.invalid_key)
            raise ChallengeRejectedError(
                ctx.messages.get(self.invalid_key),
                message_key=self.invalid_key,
                identity_type=self.identity_type,
            )

        if not await ctx.identities.delete_by_id(identity.id):  # type: ignore[arg-type]
            logger.warning(
                "%s challenge for user %s consumed concurrently",
                self.identity_type.value,
                user.id,
            )
            raise ChallengeNotFoundError(
                ctx.messages.get(self.invalid_key),
                message_key=self.invalid_key,
                identity_type=self.identity_type,
            )

        await self._on_verified(user)
        await session.complete_login(user.id)
        logger.info("%s challenge verified for user %s", self.identity_type.value, user.id)
        await self._emit(AuthEventType.CHALLENGE_VERIFIED, user_id=user.id)
        await self._emit(AuthEventType.LOGIN_SUCCESS, user_id=user.id)
        return VerificationResult(identity_type=self.identity_type, user_id=user.id)

    async def _fail(self, user_id: int, reason: str) -> None:
        logger.warning(
            "%s challenge failed for user %s: %s",
            self.identity_type.value,
            user_id,
            reason,
        )
        await self._emit(AuthEventType.CHALLENGE_FAILED, user_id=user_id, reason=reason)

    async def _on_verified(self, user: User) -> None:
        """Hook run after the code was consumed, before the login completes."""


__all__: list[str] = [
    "ChallengeActionBase",
    "ChallengeContext",
    "CodeChallengeAction",
    "IssueResult",
    "RequestInfo",
    "VerificationResult",
    "require_pending_user",
]
