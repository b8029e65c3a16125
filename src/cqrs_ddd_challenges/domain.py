"""Domain types: users, identities and login attempts.

An Identity is any secret bound to a user for one purpose. The phone/password
credential is an identity too, but its phone number is surfaced on the User
as a first-class field.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class IdentityType(str, Enum):
    """Purpose of an identity record."""

    PHONE_PASSWORD = "phone_password"  # noqa: S105
    PHONE_2FA = "phone_2fa"
    PHONE_ACTIVATE = "phone_activate"
    MAGIC_LINK = "magic-link"

    @property
    def is_challenge(self) -> bool:
        """Single-use, time-boxed types. Everything but the credential."""
        return self is not IdentityType.PHONE_PASSWORD


# Challenge types that block a full login until they are verified.
ACTION_TYPES: tuple[IdentityType, ...] = (
    IdentityType.PHONE_2FA,
    IdentityType.PHONE_ACTIVATE,
)


class ChallengeState(str, Enum):
    """States of a challenge instance."""

    ISSUED = "issued"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Identity(BaseModel):
    """A secret bound to a user for one purpose.

    Challenge identities are never updated in place: re-issuing deletes the
    old record and inserts a new one.

    Attributes:
        id: Storage id, None until inserted.
        user_id: Owning user.
        type: Purpose of the secret.
        secret: Phone number, numeric code or token depending on type.
        secret2: Auxiliary secret (password hash for the credential).
        name: Short annotation (e.g. "login", "register").
        extra: Human readable prompt shown while the challenge is pending.
        expires: Expiry instant; None means the identity never expires.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = None
    user_id: int
    type: IdentityType
    secret: str
    secret2: str | None = None
    name: str | None = None
    extra: str | None = None
    expires: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        """Return True when the identity has an expiry and it has passed."""
        if self.expires is None:
            return False
        return (now or utcnow()) > as_utc(self.expires)  # type: ignore[operator]


class User(BaseModel):
    """Account holder.

    ``password`` only ever lives in memory: it is hashed into the
    phone/password identity when the user is saved.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: int | None = None
    username: str | None = None
    active: bool = False
    status: str | None = None
    status_message: str | None = None
    phone: str | None = None
    password: str | None = Field(default=None, repr=False, exclude=True)
    password_hash: str | None = Field(default=None, repr=False)
    groups: list[str] = Field(default_factory=list)
    identities: list[Identity] | None = None
    last_active: datetime | None = None
    created_at: datetime | None = None

    def in_group(self, group: str) -> bool:
        return group.lower() in (g.lower() for g in self.groups)


class LoginAttempt(BaseModel):
    """Append-only audit record of a login attempt."""

    model_config = ConfigDict(frozen=True)

    id_type: IdentityType
    identifier: str
    success: bool
    ip_address: str
    user_agent: str | None = None
    user_id: int | None = None
    date: datetime = Field(default_factory=utcnow)


__all__: list[str] = [
    "ACTION_TYPES",
    "ChallengeState",
    "Identity",
    "IdentityType",
    "LoginAttempt",
    "User",
    "as_utc",
    "utcnow",
]
