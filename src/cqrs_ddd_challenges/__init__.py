"""CQRS-DDD Challenges Package

Secondary authentication challenges: "Prove it's really you."

Issues and verifies one-time phone codes (2FA and account activation) and
single-use magic-link tokens, and gates the browser session's login on
their outcome.

Usage:
    ```python
    from cqrs_ddd_challenges import AuthSession, ChallengeContext, Phone2FAAction
    from cqrs_ddd_challenges.memory import (
        InMemoryDeliveryGateway,
        InMemoryIdentityStore,
        InMemoryLoginAttemptStore,
        InMemoryUserRepository,
    )

    identities = InMemoryIdentityStore()
    users = InMemoryUserRepository(identities)
    context = ChallengeContext(
        users=users,
        identities=identities,
        gateway=InMemoryDeliveryGateway(),
        login_attempts=InMemoryLoginAttemptStore(),
    )
    session = AuthSession("sess-1", store=store, users=users, identities=identities)
    await session.set_pending_user(user)
    await Phone2FAAction(context).issue(session)
    ```

Submodules:
    - `memory`: in-memory adapters for tests and single-process use
    - `persistence`: SQLAlchemy 2.0 async adapters
    - `delivery`: SMS gateways (httpx, optional twilio)
"""

from __future__ import annotations

# Actions
from .actions import (
    ChallengeAction,
    ChallengeContext,
    IssueResult,
    MagicLinkAction,
    Phone2FAAction,
    PhoneActivationAction,
    RequestInfo,
    VerificationResult,
    action_for,
)

# Configuration
from .config import ChallengeConfig, SmsGatewayConfig

# Domain
from .domain import (
    ACTION_TYPES,
    ChallengeState,
    Identity,
    IdentityType,
    LoginAttempt,
    User,
)

# Signals
from .events import AuthEvent, AuthEventType, AuthSignals

# Exceptions
from .exceptions import (
    ChallengeConcurrencyError,
    ChallengeError,
    ChallengeExpiredError,
    ChallengeFailedError,
    ChallengeNotFoundError,
    ChallengePersistenceError,
    ChallengeRejectedError,
    DeliveryFailedError,
    FlowStateError,
    IdentityConflictError,
    IdentitySyncError,
    InvalidContactError,
    LockAcquisitionError,
    MagicLinkDisabledError,
    SecretGenerationError,
    SessionManagementError,
    UnitOfWorkError,
    UnknownGroupError,
)

# Generation
from .generator import SecretGenerator, SecretPolicy, generate_code, generate_token
from .hasher import PasswordHasher
from .locking import KeyedLock
from .messages import MessageCatalog

# Ports
from .ports import (
    IDeliveryGateway,
    IIdentityStore,
    ILoginAttemptStore,
    ISessionStore,
    IUserRepository,
)

# Session
from .session import AuthSession, InMemorySessionStore
from .uow import UnitOfWork
from .users import UserManager

__all__: list[str] = [
    # Actions
    "ChallengeAction",
    "ChallengeContext",
    "IssueResult",
    "MagicLinkAction",
    "Phone2FAAction",
    "PhoneActivationAction",
    "RequestInfo",
    "VerificationResult",
    "action_for",
    # Configuration
    "ChallengeConfig",
    "SmsGatewayConfig",
    # Domain
    "ACTION_TYPES",
    "ChallengeState",
    "Identity",
    "IdentityType",
    "LoginAttempt",
    "User",
    # Signals
    "AuthEvent",
    "AuthEventType",
    "AuthSignals",
    # Exceptions
    "ChallengeConcurrencyError",
    "ChallengeError",
    "ChallengeExpiredError",
    "ChallengeFailedError",
    "ChallengeNotFoundError",
    "ChallengePersistenceError",
    "ChallengeRejectedError",
    "DeliveryFailedError",
    "FlowStateError",
    "IdentityConflictError",
    "IdentitySyncError",
    "InvalidContactError",
    "LockAcquisitionError",
    "MagicLinkDisabledError",
    "SecretGenerationError",
    "SessionManagementError",
    "UnitOfWorkError",
    "UnknownGroupError",
    # Generation
    "SecretGenerator",
    "SecretPolicy",
    "generate_code",
    "generate_token",
    # Services
    "KeyedLock",
    "MessageCatalog",
    "PasswordHasher",
    "UserManager",
    # Ports
    "IDeliveryGateway",
    "IIdentityStore",
    "ILoginAttemptStore",
    "ISessionStore",
    "IUserRepository",
    "UnitOfWork",
    # Session
    "AuthSession",
    "InMemorySessionStore",
]
