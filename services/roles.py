"""
Role resolution: which role names a user currently holds.

Roles are always fetched explicitly through RoleStore; nothing relies on
relationship lazy-loading on the User instance.
"""
from __future__ import annotations

from typing import Iterable, Optional, Set

from models.role import Role, RoleUser


class RoleStore:
    def __init__(self, storage):
        self._storage = storage

    def fetch_active_roles(self, user_id: int) -> Set[str]:
        session = self._storage.get_session()
        rows = (
            session.query(Role.role_name)
            .join(RoleUser, RoleUser.role_id == Role.id)
            .filter(RoleUser.user_id == user_id, RoleUser.is_active.is_(True))
            .all()
        )
        return {name for (name,) in rows}

    def find_role(self, role_name: str) -> Optional[Role]:
        session = self._storage.get_session()
        return session.query(Role).filter(Role.role_name == role_name).first()


class RoleResolver:
    def __init__(self, store: RoleStore, admin_role_name: str):
        self._store = store
        self._admin_role = admin_role_name.casefold()

    def resolve(self, user_id: int) -> Set[str]:
        return self._store.fetch_active_roles(user_id)

    def is_privileged(self, role_names: Iterable[str]) -> bool:
        return any(name.casefold() == self._admin_role for name in role_names)

    def find_role(self, role_name: str) -> Optional[Role]:
        return self._store.find_role(role_name)
