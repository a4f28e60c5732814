"""
Login / refresh / validate / revoke protocol.

AuthService composes the token codec, the refresh token store and role
resolution. Refresh rejections are collapsed into a single `None` result;
the reason is only logged.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models.user import User
from services.errors import IssuanceError, MalformedTokenError, TokenExpiredError
from services.refresh_tokens import RefreshTokenStore
from services.roles import RoleResolver, RoleStore
from services.settings import AuthSettings
from services.tokens import NAME_CLAIM, TokenCodec, subject_user_id

logger = logging.getLogger(__name__)


@dataclass
class UserInfo:
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    roles: List[str] = field(default_factory=list)


@dataclass
class RoleRedirect:
    user_id: int
    username: str
    is_admin: bool
    redirect_url: str


@dataclass
class AuthResponse:
    token: str
    refresh_token: str
    expiration: datetime
    user: UserInfo
    role_redirection: RoleRedirect


@dataclass
class TokenValidation:
    is_valid: bool
    user_id: Optional[int] = None
    username: Optional[str] = None
    remaining_seconds: Optional[int] = None


class AuthService:
    def __init__(
        self,
        settings: AuthSettings,
        storage,
        codec: Optional[TokenCodec] = None,
        refresh_tokens: Optional[RefreshTokenStore] = None,
        roles: Optional[RoleResolver] = None,
    ):
        self.settings = settings
        self._storage = storage
        self.codec = codec or TokenCodec(settings)
        self.refresh_tokens = refresh_tokens or RefreshTokenStore(storage)
        self.roles = roles or RoleResolver(RoleStore(storage), settings.admin_role_name)

    def issue(self, user: User) -> AuthResponse:
        """
        Issue an access token and a bound refresh token for `user`.
        Raises IssuanceError if the refresh token could not be persisted.
        """
        try:
            roles = sorted(self.roles.resolve(user.id))
            issued = self.codec.issue(user.id, user.username, user.email, roles)
            record = self.refresh_tokens.create(user.id, issued.jti, self.settings.refresh_token_days)
            info = UserInfo(
                id=user.id,
                username=user.username,
                email=user.email,
                first_name=user.first_name,
                last_name=user.last_name,
                roles=roles,
            )
        except SQLAlchemyError as exc:
            self._storage.rollback()
            logger.exception("Token issuance failed", extra={"user_id": user.id})
            raise IssuanceError("Could not issue tokens, try again") from exc

        is_admin = self.roles.is_privileged(roles)
        redirect = RoleRedirect(
            user_id=user.id,
            username=user.username,
            is_admin=is_admin,
            redirect_url=self.settings.admin_redirect_url if is_admin else self.settings.default_redirect_url,
        )
        logger.info("Tokens issued", extra={"user_id": user.id, "jti": issued.jti})
        return AuthResponse(
            token=issued.token,
            refresh_token=record.token,
            expiration=issued.expires_at,
            user=info,
            role_redirection=redirect,
        )

    def refresh(self, token: str, refresh_token: str) -> Optional[AuthResponse]:
        """
        Exchange a (possibly expired) access token and its refresh token for a
        new pair. Returns None on any rejection.
        """
        try:
            claims = self.codec.parse(token)
        except MalformedTokenError:
            return self._reject("malformed access token")

        jti = claims.get("jti")
        user_id = subject_user_id(claims.get("sub"))
        if not jti or user_id is None:
            return self._reject("access token lacks jti or subject")

        try:
            record = self.refresh_tokens.find_by_token(refresh_token)
            if record is None:
                return self._reject("unknown refresh token", user_id=user_id)
            if not record.is_active:
                return self._reject("refresh token not active", user_id=user_id)
            if record.jwt_id != jti or record.user_id != user_id:
                return self._reject("refresh token bound to another access token", user_id=user_id)
            if not self.refresh_tokens.mark_used(record):
                return self._reject("refresh token consumed concurrently", user_id=user_id)

            user = self._storage.get(User, user_id)
            if user is None or not user.is_active:
                return self._reject("user missing or inactive", user_id=user_id)
        except SQLAlchemyError:
            logger.warning("Refresh lookup failed", exc_info=True, extra={"user_id": user_id})
            self._storage.rollback()
            return None

        # the consumed row and the new row are committed together
        return self.issue(user)

    def validate(self, token: str) -> TokenValidation:
        if not token:
            return TokenValidation(is_valid=False)
        try:
            claims = self.codec.validate(token)
            user_id, username = self._identity(claims)
            if user_id is None:
                return TokenValidation(is_valid=False)
            remaining = int(claims["exp"] - datetime.now(timezone.utc).timestamp())
            return TokenValidation(
                is_valid=True,
                user_id=user_id,
                username=username,
                remaining_seconds=max(remaining, 0),
            )
        except TokenExpiredError as exc:
            user_id, username = self._identity(exc.claims)
            if user_id is None:
                return TokenValidation(is_valid=False)
            return TokenValidation(is_valid=False, user_id=user_id, username=username, remaining_seconds=0)
        except Exception:
            # input is attacker-controlled; any failure means "invalid"
            logger.debug("Token validation failed", exc_info=True)
            return TokenValidation(is_valid=False)

    def revoke_all(self, user_id: int) -> bool:
        try:
            count = self.refresh_tokens.revoke_all_active(user_id)
        except SQLAlchemyError:
            logger.exception("Revoking refresh tokens failed", extra={"user_id": user_id})
            self._storage.rollback()
            return False
        logger.info("Refresh tokens revoked", extra={"user_id": user_id, "count": count})
        return True

    @staticmethod
    def _identity(claims) -> Tuple[Optional[int], Optional[str]]:
        """(user_id, username) from claims, or (None, None) unless both are well formed."""
        user_id = subject_user_id(claims.get("sub"))
        username = claims.get(NAME_CLAIM)
        if user_id is None or not isinstance(username, str):
            return None, None
        return user_id, username

    def _reject(self, reason: str, user_id: Optional[int] = None) -> None:
        self._storage.rollback()
        logger.info("Refresh rejected: %s", reason, extra={"user_id": user_id})
        return None
