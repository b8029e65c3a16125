"""In-memory login attempt log for testing and development."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..domain import LoginAttempt
from ..ports import ILoginAttemptStore

if TYPE_CHECKING:
    from ..domain import IdentityType


class InMemoryLoginAttemptStore(ILoginAttemptStore):
    """Append-only list of LoginAttempt records.

    Note:
        Records are lost on restart. Not suitable for production use.
    """

    def __init__(self) -> None:
        self.attempts: list[LoginAttempt] = []

    async def record_login_attempt(
        self,
        id_type: IdentityType,
        identifier: str,
        success: bool,
        ip_address: str,
        user_agent: str | None = None,
        user_id: int | None = None,
    ) -> None:
        self.attempts.append(
            LoginAttempt(
                id_type=id_type,
                identifier=identifier,
                success=success,
                ip_address=ip_address,
                user_agent=user_agent,
                user_id=user_id,
            )
        )

    def failures(self) -> list[LoginAttempt]:
        return [a for a in self.attempts if not a.success]

    def successes(self) -> list[LoginAttempt]:
        return [a for a in self.attempts if a.success]

    def clear(self) -> None:
        self.attempts.clear()


__all__: list[str] = ["InMemoryLoginAttemptStore"]
