from services.auth import AuthResponse, AuthService, RoleRedirect, TokenValidation, UserInfo
from services.errors import (
    AuthError,
    ConfigurationError,
    IssuanceError,
    MalformedTokenError,
    TokenExpiredError,
    TokenValidationError,
)
from services.settings import AuthSettings
from services.tokens import TokenCodec

__all__ = [
    "AuthResponse",
    "AuthService",
    "AuthSettings",
    "AuthError",
    "ConfigurationError",
    "IssuanceError",
    "MalformedTokenError",
    "RoleRedirect",
    "TokenCodec",
    "TokenExpiredError",
    "TokenValidation",
    "TokenValidationError",
    "UserInfo",
]
