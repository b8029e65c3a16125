"""Configuration value objects.

Configuration is passed explicitly into stores, actions and gateways; nothing
in this package reads global settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_GROUPS: frozenset[str] = frozenset(
    {"superadmin", "admin", "developer", "user", "beta"}
)


@dataclass(frozen=True)
class ChallengeConfig:
    """Challenge configuration.

    Attributes:
        code_length: Number of digits in a numeric code.
        ambiguous_digits: Digits never used in codes (default excludes "0").
        token_bytes: Random bytes behind a magic-link token.
        code_ttl_seconds: Lifetime of a 2FA code.
        activation_ttl_seconds: Lifetime of an activation code.
        magic_link_lifetime_seconds: Lifetime of a magic-link token.
        allow_magic_link_logins: Master switch for magic links.
        phone_pattern: Regular expression a submitted phone must match.
        magic_link_url: URL template delivered to the user; ``{token}`` is
            replaced with the token.
        code_template_id: Gateway template used for numeric codes.
        magic_link_template_id: Gateway template used for magic links.
        delivery_fallback_route: Route offered when delivery fails, or None
            to offer no fallback.
        default_group: Group new users are added to.
        groups: Known group names.
    """

    code_length: int = 6
    ambiguous_digits: str = "0"
    token_bytes: int = 20
    code_ttl_seconds: int = 600  # 10 minutes
    activation_ttl_seconds: int = 3600  # 1 hour
    magic_link_lifetime_seconds: int = 3600  # 1 hour
    allow_magic_link_logins: bool = True
    phone_pattern: str = r"^\+?[0-9]{7,15}$"
    magic_link_url: str = "/login/verify-magic-link?token={token}"
    code_template_id: int = 100000
    magic_link_template_id: int = 100000
    delivery_fallback_route: str | None = "magic-link"
    default_group: str | None = "user"
    groups: frozenset[str] = field(default_factory=lambda: DEFAULT_GROUPS)

    def __post_init__(self) -> None:
        if self.code_length < 1:
            raise ValueError("code_length must be positive")
        if not set("0123456789") - set(self.ambiguous_digits):
            raise ValueError("ambiguous_digits must leave at least one digit")
        if self.token_bytes < 16:
            raise ValueError("token_bytes must be at least 16")
        for name in (
            "code_ttl_seconds",
            "activation_ttl_seconds",
            "magic_link_lifetime_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if "{token}" not in self.magic_link_url:
            raise ValueError("magic_link_url must contain a {token} placeholder")


@dataclass(frozen=True)
class SmsGatewayConfig:
    """HTTP SMS gateway credentials.

    Attributes:
        base_url: Gateway base URL.
        api_key: Value sent in the ``X-API-KEY`` header.
        endpoint: Path the verification message is posted to.
        timeout: Request timeout in seconds.
        verify_tls: Whether to verify the gateway's TLS certificate.
    """

    base_url: str
    api_key: str = field(repr=False)
    endpoint: str = "verify"
    timeout: float = 10.0
    verify_tls: bool = True


__all__: list[str] = ["ChallengeConfig", "DEFAULT_GROUPS", "SmsGatewayConfig"]
