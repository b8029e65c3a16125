"""SQLAlchemy 2.0 async adapters."""

from .attempts import SQLAlchemyLoginAttemptStore
from .identities import SQLAlchemyIdentityStore
from .models import (
    Base,
    GroupMembershipModel,
    IdentityModel,
    LoginModel,
    UserModel,
)
from .uow import SQLAlchemyUnitOfWork, session_scope
from .users import SQLAlchemyUserRepository

__all__: list[str] = [
    "Base",
    "GroupMembershipModel",
    "IdentityModel",
    "LoginModel",
    "SQLAlchemyIdentityStore",
    "SQLAlchemyLoginAttemptStore",
    "SQLAlchemyUnitOfWork",
    "SQLAlchemyUserRepository",
    "UserModel",
    "session_scope",
]
