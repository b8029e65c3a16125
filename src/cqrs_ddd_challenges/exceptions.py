"""Challenge-related exceptions.

All errors raised by this package inherit from ChallengeError. User-facing
failures (wrong code, expired link, bad phone) inherit from
ChallengeFailedError and carry a localized message; everything else is a
programming, integration or data-integrity error that must propagate.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .domain import ChallengeState

if TYPE_CHECKING:
    from .domain import IdentityType

# ═══════════════════════════════════════════════════════════════
# BASE ERROR
# ═══════════════════════════════════════════════════════════════


class ChallengeError(Exception):
    """Root exception for the challenges package."""


# ═══════════════════════════════════════════════════════════════
# FLOW / PROGRAMMING ERRORS
# ═══════════════════════════════════════════════════════════════


class FlowStateError(ChallengeError):
    """Raised when an action is reached out of sequence.

    Examples:
        - no pending login user when a code action is invoked
        - activation requested for a user without a phone number
    """


class SecretGenerationError(ChallengeError):
    """Raised when the operating system CSPRNG is unavailable."""


# ═══════════════════════════════════════════════════════════════
# USER-FACING FAILURES
# ═══════════════════════════════════════════════════════════════


class ChallengeFailedError(ChallengeError):
    """Base class for expected, user-facing challenge failures.

    Attributes:
        message: Localized text safe to show to the end user.
        message_key: Catalog key the message was rendered from.
        identity_type: Challenge type the failure belongs to, if any.
        state: Resulting challenge state.
    """

    state: ChallengeState = ChallengeState.REJECTED

    def __init__(
        self,
        message: str,
        *,
        message_key: str | None = None,
        identity_type: IdentityType | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.message_key = message_key
        self.identity_type = identity_type


class ChallengeRejectedError(ChallengeFailedError):
    """Raised when the submitted secret does not match.

    The stored challenge is preserved so the user can resubmit.
    """


class ChallengeNotFoundError(ChallengeRejectedError):
    """Raised when there is no challenge record to verify against."""


class ChallengeExpiredError(ChallengeFailedError):
    """Raised when the challenge outlived its TTL.

    The user must request a new challenge rather than retype the old one.
    """

    state = ChallengeState.EXPIRED


class InvalidContactError(ChallengeFailedError):
    """Raised when a phone number is malformed or does not match an account."""


class MagicLinkDisabledError(ChallengeFailedError):
    """Raised when magic-link logins are switched off in configuration."""


# ═══════════════════════════════════════════════════════════════
# DELIVERY ERRORS
# ═══════════════════════════════════════════════════════════════


class DeliveryFailedError(ChallengeError):
    """Raised when the delivery gateway reports a non-success status.

    Attributes:
        message: Localized text safe to show to the end user.
        destination: Phone number the challenge was meant for.
        status_code: Status code returned by the gateway.
        fallback_route: Route the presentation layer should offer instead,
            or None when no fallback is configured.
    """

    def __init__(
        self,
        message: str,
        *,
        destination: str,
        status_code: int,
        fallback_route: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.destination = destination
        self.status_code = status_code
        self.fallback_route = fallback_route


# ═══════════════════════════════════════════════════════════════
# USER / DATA INTEGRITY ERRORS
# ═══════════════════════════════════════════════════════════════


class IdentitySyncError(ChallengeError):
    """Raised when the password identity could not be written for a user.

    The surrounding unit of work is rolled back so no user row is left
    without a login identity.
    """

    def __init__(self, user_id: int | None, reason: str) -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__(
            f"Failed to save phone identity for user_id={user_id!r}: {reason}"
        )


class UnknownGroupError(ChallengeError):
    """Raised when the configured default group is not a known group."""


# ═══════════════════════════════════════════════════════════════
# CONCURRENCY / PERSISTENCE ERRORS
# ═══════════════════════════════════════════════════════════════


class ChallengeConcurrencyError(ChallengeError):
    """Base class for concurrency conflicts."""


class LockAcquisitionError(ChallengeConcurrencyError):
    """Raised when a per-(user, type) lock cannot be taken in time."""

    def __init__(self, key: str, timeout: float) -> None:
        self.key = key
        self.timeout = timeout
        super().__init__(f"Failed to acquire lock on {key} within {timeout}s")


class ChallengePersistenceError(ChallengeError):
    """Base class for persistence failures."""


class IdentityConflictError(ChallengePersistenceError):
    """Raised when an identity would violate a uniqueness rule.

    Examples:
        - a second user registering an already used phone number
        - a challenge secret colliding with another user's live secret
    """


class UnitOfWorkError(ChallengePersistenceError):
    """Raised when commit or rollback fails."""


class SessionManagementError(ChallengePersistenceError):
    """Raised when a database session cannot be created or closed."""


__all__: list[str] = [
    # Base
    "ChallengeError",
    # Flow
    "FlowStateError",
    "SecretGenerationError",
    # User-facing
    "ChallengeFailedError",
    "ChallengeRejectedError",
    "ChallengeNotFoundError",
    "ChallengeExpiredError",
    "InvalidContactError",
    "MagicLinkDisabledError",
    # Delivery
    "DeliveryFailedError",
    # Users
    "IdentitySyncError",
    "UnknownGroupError",
    # Concurrency / persistence
    "ChallengeConcurrencyError",
    "LockAcquisitionError",
    "ChallengePersistenceError",
    "IdentityConflictError",
    "UnitOfWorkError",
    "SessionManagementError",
]
