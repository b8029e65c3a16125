"""SQLAlchemy table models for users, identities, groups and login attempts."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


_PK = Integer().with_variant(BigInteger, "postgresql")


class Base(DeclarativeBase):
    """Declarative base for the challenge tables."""


class TimestampColumnsMixin:
    """Adds created_at and updated_at columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=_utcnow
    )


class UserModel(TimestampColumnsMixin, Base):
    """User row. Phone and password live in ``auth_identities``."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    username: Mapped[str | None] = mapped_column(String(30), unique=True, nullable=True)
    status: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status_message: Mapped[str | None] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_active: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class IdentityModel(TimestampColumnsMixin, Base):
    """Secrets bound to a user: credential, codes and magic-link tokens.

    ``UNIQUE(user_id, type)`` backs the one-active-challenge rule;
    ``UNIQUE(type, secret)`` makes token lookups unambiguous.
    """

    __tablename__ = "auth_identities"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    secret: Mapped[str] = mapped_column(String(255), nullable=False)
    secret2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    expires: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    extra: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "type", name="uq_auth_identities_user_type"),
        UniqueConstraint("type", "secret", name="uq_auth_identities_type_secret"),
        Index("ix_auth_identities_user_id", "user_id"),
    )


class GroupMembershipModel(Base):
    """Group membership of a user."""

    __tablename__ = "auth_groups_users"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    group: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "group", name="uq_auth_groups_users_user_group"),
    )


class LoginModel(Base):
    """Append-only login attempt log."""

    __tablename__ = "auth_logins"

    id: Mapped[int] = mapped_column(_PK, primary_key=True, autoincrement=True)
    ip_address: Mapped[str] = mapped_column(String(255), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    id_type: Mapped[str] = mapped_column(String(255), nullable=False)
    identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)

    __table_args__ = (
        Index("ix_auth_logins_id_type_identifier", "id_type", "identifier"),
        Index("ix_auth_logins_user_id", "user_id"),
    )


__all__: list[str] = [
    "Base",
    "GroupMembershipModel",
    "IdentityModel",
    "LoginModel",
    "TimestampColumnsMixin",
    "UserModel",
]
