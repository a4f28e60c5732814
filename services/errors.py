"""Error taxonomy of the authentication subsystem."""
from __future__ import annotations

from typing import Any, Dict, Optional


class AuthError(Exception):
    """Base class for authentication errors."""


class ConfigurationError(AuthError):
    """Invalid or missing auth configuration. Raised at startup."""


class MalformedTokenError(AuthError):
    """The string cannot be decoded as a JWT."""


class TokenValidationError(AuthError):
    """A decodable token failed signature, issuer, audience or expiry checks."""


class InvalidSignatureError(TokenValidationError):
    pass


class InvalidIssuerError(TokenValidationError):
    pass


class InvalidAudienceError(TokenValidationError):
    pass


class TokenExpiredError(TokenValidationError):
    """
    Signature, issuer and audience are fine but the token is past `exp`.
    `claims` holds the payload, which must not be trusted for authorization.
    """

    def __init__(self, message: str = "Token expired", claims: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.claims = claims or {}


class IssuanceError(AuthError):
    """Tokens could not be persisted; nothing was handed out, the caller may retry."""
