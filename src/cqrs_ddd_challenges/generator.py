"""Challenge secret generation.

Numeric codes are drawn uniformly from the decimal digits minus the
configured ambiguous ones; magic-link tokens are URL-safe random strings.
Both come from the ``secrets`` module and never fall back to ``random``.
"""

from __future__ import annotations

import secrets
import string
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import SecretGenerationError

if TYPE_CHECKING:
    from .config import ChallengeConfig


class SecretPolicy(Enum):
    """How a challenge secret is generated."""

    NUMERIC_CODE = "numeric_code"
    OPAQUE_TOKEN = "opaque_token"  # noqa: S105


def code_alphabet(exclude: str = "0") -> str:
    """Decimal digits with ``exclude`` removed, in ascending order."""
    alphabet = "".join(d for d in string.digits if d not in exclude)
    if not alphabet:
        raise ValueError("Cannot exclude every digit from the code alphabet")
    return alphabet


def generate_code(length: int = 6, *, exclude: str = "0") -> str:
    """Generate a fixed-length numeric code.

    Args:
        length: Number of digits.
        exclude: Digits that must not appear in the code.

    Returns:
        Code of exactly ``length`` digits.

    Raises:
        SecretGenerationError: If the system CSPRNG is unavailable.
    """
    if length < 1:
        raise ValueError("length must be positive")
    alphabet = code_alphabet(exclude)
    try:
        return "".join(secrets.choice(alphabet) for _ in range(length))
    except (NotImplementedError, OSError) as e:
        raise SecretGenerationError(f"Secure random source unavailable: {e}") from e


def generate_token(length_bytes: int = 20) -> str:
    """Generate a URL-safe token carrying ``length_bytes`` of entropy.

    Raises:
        SecretGenerationError: If the system CSPRNG is unavailable.
    """
    try:
        return secrets.token_urlsafe(length_bytes)
    except (NotImplementedError, OSError) as e:
        raise SecretGenerationError(f"Secure random source unavailable: {e}") from e


class SecretGenerator:
    """Produces secrets for a policy using the configured sizes."""

    def __init__(self, config: ChallengeConfig) -> None:
        self.config = config

    def generate(self, policy: SecretPolicy) -> str:
        if policy is SecretPolicy.NUMERIC_CODE:
            return generate_code(
                self.config.code_length, exclude=self.config.ambiguous_digits
            )
        return generate_token(self.config.token_bytes)


__all__: list[str] = [
    "SecretGenerator",
    "SecretPolicy",
    "code_alphabet",
    "generate_code",
    "generate_token",
]
