"""
Immutable auth configuration, built once when the app starts.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from services.errors import ConfigurationError

DEFAULT_ACCESS_TOKEN_MINUTES = 60
DEFAULT_REFRESH_TOKEN_DAYS = 7


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _positive_int(config: Mapping[str, Any], key: str, default: int) -> int:
    raw = config.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive")
    return value


@dataclass(frozen=True)
class AuthSettings:
    secret: str
    issuer: Optional[str] = None
    audience: Optional[str] = None
    access_token_minutes: int = DEFAULT_ACCESS_TOKEN_MINUTES
    refresh_token_days: int = DEFAULT_REFRESH_TOKEN_DAYS
    admin_role_name: str = "admin"
    admin_redirect_url: str = "/admin"
    default_redirect_url: str = "/"
    algorithm: str = "HS256"

    def __post_init__(self):
        if not self.secret or not str(self.secret).strip():
            raise ConfigurationError("JWT secret is not configured")
        if not self.algorithm.startswith("HS"):
            raise ConfigurationError("Only HMAC (HS*) signing algorithms are supported")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        """Build settings from a Flask config (or any mapping of JWT_* keys)."""
        return cls(
            secret=config.get("JWT_SECRET") or "",
            issuer=_blank_to_none(config.get("JWT_ISSUER")),
            audience=_blank_to_none(config.get("JWT_AUDIENCE")),
            access_token_minutes=_positive_int(
                config, "JWT_ACCESS_TOKEN_MINUTES", DEFAULT_ACCESS_TOKEN_MINUTES
            ),
            refresh_token_days=_positive_int(
                config, "JWT_REFRESH_TOKEN_DAYS", DEFAULT_REFRESH_TOKEN_DAYS
            ),
            admin_role_name=config.get("ADMIN_ROLE_NAME") or "admin",
            admin_redirect_url=config.get("ADMIN_REDIRECT_URL") or "/admin",
            default_redirect_url=config.get("DEFAULT_REDIRECT_URL") or "/",
            algorithm=config.get("JWT_ALGORITHM") or "HS256",
        )
