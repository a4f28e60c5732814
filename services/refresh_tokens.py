"""
Refresh token persistence and state transitions.

State machine per row: Active -> Used (successful refresh) or
Active -> Revoked (revoke-all). Expiry is derived from expiry_date at read
time. Transitions are conditional UPDATEs on the active predicate, so a row
can only leave Active once even under concurrent requests.
"""
from __future__ import annotations

from datetime import timedelta
from typing import Optional

from sqlalchemy import update

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from utils.security import generate_refresh_token_value


def _active_clause(now):
    return (
        RefreshToken.is_used.is_(False),
        RefreshToken.is_revoked.is_(False),
        RefreshToken.expiry_date >= now,
    )


class RefreshTokenStore:
    def __init__(self, storage):
        self._storage = storage

    def create(self, user_id: int, jwt_id: str, ttl_days: int, commit: bool = True) -> RefreshToken:
        """
        Persist a new active refresh token for `user_id` bound to `jwt_id`.
        With commit=False the row is only flushed, so it joins the caller's
        transaction.
        """
        now = utcnow()
        record = RefreshToken(
            token=generate_refresh_token_value(),
            user_id=user_id,
            jwt_id=jwt_id,
            is_used=False,
            is_revoked=False,
            added_date=now,
            expiry_date=now + timedelta(days=ttl_days),
        )
        self._storage.new(record)
        if commit:
            self._storage.save()
        else:
            self._storage.get_session().flush()
        return record

    def find_by_token(self, value: str) -> Optional[RefreshToken]:
        if not value:
            return None
        session = self._storage.get_session()
        return session.query(RefreshToken).filter(RefreshToken.token == value).first()

    def mark_used(self, record: RefreshToken) -> bool:
        """
        Flip is_used on `record` only if it is still active.
        Returns False when another request already consumed, revoked or the
        row expired. Does not commit.
        """
        session = self._storage.get_session()
        result = session.execute(
            update(RefreshToken)
            .where(RefreshToken.id == record.id, *_active_clause(utcnow()))
            .values(is_used=True)
            .execution_options(synchronize_session=False)
        )
        session.expire(record)
        return result.rowcount == 1

    def revoke_all_active(self, user_id: int) -> int:
        """Revoke every active token of `user_id` and commit. Zero rows is fine."""
        session = self._storage.get_session()
        result = session.execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, *_active_clause(utcnow()))
            .values(is_revoked=True)
            .execution_options(synchronize_session=False)
        )
        self._storage.save()
        session.expire_all()
        return result.rowcount
