"""
Access token codec: HMAC-signed JWTs via PyJWT.

Claims written on issue:
- sub: user id (string)
- unique_name, email
- jti: fresh UUID per issuance
- role: list of role names
- iat, exp, and iss / aud when configured
"""
from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, NamedTuple, Optional

import jwt

from services.errors import (
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidSignatureError,
    MalformedTokenError,
    TokenExpiredError,
    TokenValidationError,
)
from services.settings import AuthSettings
from utils.security import generate_jti


ROLE_CLAIM = "role"
NAME_CLAIM = "unique_name"
REQUIRED_CLAIMS = ["exp", "sub", "jti"]

_USER_ID = re.compile(r"-?\d+", re.ASCII)


def subject_user_id(subject) -> Optional[int]:
    """Integer user id from a `sub` claim, or None if it is not a plain integer."""
    if isinstance(subject, int) and not isinstance(subject, bool):
        return subject
    if isinstance(subject, str) and _USER_ID.fullmatch(subject):
        return int(subject)
    return None


class IssuedToken(NamedTuple):
    token: str
    jti: str
    expires_at: datetime


class TokenCodec:
    def __init__(self, settings: AuthSettings):
        self._settings = settings
        self._key = settings.secret.encode("utf-8")

    def issue(
        self,
        user_id: int,
        username: str,
        email: str,
        role_names: Iterable[str],
        ttl_minutes: Optional[float] = None,
    ) -> IssuedToken:
        if ttl_minutes is None:
            ttl_minutes = self._settings.access_token_minutes
        jti = generate_jti()
        now = datetime.now(timezone.utc)
        exp = int((now + timedelta(minutes=ttl_minutes)).timestamp())
        payload = {
            "sub": str(user_id),
            NAME_CLAIM: username,
            "email": email,
            "jti": jti,
            ROLE_CLAIM: sorted(set(role_names)),
            "iat": int(now.timestamp()),
            "exp": exp,
        }
        if self._settings.issuer:
            payload["iss"] = self._settings.issuer
        if self._settings.audience:
            payload["aud"] = self._settings.audience

        token = jwt.encode(payload, self._key, algorithm=self._settings.algorithm)
        return IssuedToken(token, jti, datetime.fromtimestamp(exp, timezone.utc))

    def parse(self, token: str) -> Dict[str, Any]:
        """Decode without verifying signature or any claim."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError(str(exc)) from exc

    def validate(self, token: str) -> Dict[str, Any]:
        """
        Verify signature, issuer, audience and expiry with no leeway.

        An expired token is re-checked without the expiry rule so that
        TokenExpiredError is only raised when everything else is correct.
        """
        try:
            return self._decode(token)
        except jwt.ExpiredSignatureError:
            try:
                claims = self._decode(token, verify_exp=False)
            except jwt.InvalidTokenError as exc:
                raise self._translate(exc) from exc
            raise TokenExpiredError(claims=claims)
        except jwt.InvalidTokenError as exc:
            raise self._translate(exc) from exc

    def _decode(self, token: str, verify_exp: bool = True) -> Dict[str, Any]:
        return jwt.decode(
            token,
            self._key,
            algorithms=[self._settings.algorithm],
            issuer=self._settings.issuer,
            audience=self._settings.audience,
            leeway=0,
            options={
                "require": REQUIRED_CLAIMS,
                "verify_exp": verify_exp,
                "verify_aud": self._settings.audience is not None,
                "verify_iss": self._settings.issuer is not None,
            },
        )

    @staticmethod
    def _translate(exc: jwt.InvalidTokenError) -> Exception:
        # InvalidSignatureError subclasses DecodeError: check it first
        if isinstance(exc, jwt.InvalidSignatureError):
            return InvalidSignatureError(str(exc))
        if isinstance(exc, jwt.InvalidIssuerError):
            return InvalidIssuerError(str(exc))
        if isinstance(exc, jwt.InvalidAudienceError):
            return InvalidAudienceError(str(exc))
        if isinstance(exc, jwt.DecodeError):
            return MalformedTokenError(str(exc))
        return TokenValidationError(str(exc))
