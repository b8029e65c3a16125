"""Password hashing for the phone/password credential."""

from __future__ import annotations

from typing import cast

import bcrypt


class PasswordHasher:
    """bcrypt password hasher.

    UserManager uses ``hash`` when it stores the phone/password credential.
    ``verify`` and ``needs_rehash`` are public helpers for the primary
    password check, which runs in the routing layer outside this package.

    Example:
        ```python
        hasher = PasswordHasher(rounds=12)
        hashed = hasher.hash("user_password")
        assert hasher.verify(hashed, "user_password")
        ```
    """

    def __init__(self, *, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode(), salt).decode()

    def verify(self, hashed_password: str, password: str) -> bool:
        """Return True if ``password`` matches ``hashed_password``."""
        try:
            return cast(
                "bool", bcrypt.checkpw(password.encode(), hashed_password.encode())
            )
        except ValueError:
            # Malformed hash
            return False

    def needs_rehash(self, hashed_password: str) -> bool:
        """True when the hash was made with fewer rounds than configured."""
        # bcrypt format: $2b$12$...
        parts = hashed_password.split("$")
        if len(parts) >= 3:
            try:
                return int(parts[2]) < self.rounds
            except ValueError:
                return False
        return False


__all__: list[str] = ["PasswordHasher"]
