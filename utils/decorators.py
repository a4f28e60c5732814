from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app
from models import storage
from models.user import User
from services.errors import AuthError, TokenExpiredError
from services.tokens import subject_user_id


def get_auth_service():
    return current_app.extensions["auth_service"]


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            try:
                decoded = get_auth_service().codec.validate(token)
            except TokenExpiredError:
                abort(401, description="Token expired")
            except AuthError:
                abort(401, description="Invalid token")

            user_id = subject_user_id(decoded.get("sub"))
            if user_id is None:
                abort(401, description="Invalid token")
            user = storage.get(User, user_id)
            if not user or not user.is_active:
                abort(401, description="User not found")
            g.current_user = user
            g.current_user_roles = decoded.get("role", [])
            g.current_token_jti = decoded.get("jti")
            g.current_token = token
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles (case-insensitive).
    Deny (403) only if there is NO overlap between user_roles and required_roles.
    """
    req = {r.casefold() for r in (required_roles or [])}

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            user_roles = {r.casefold() for r in getattr(g, "current_user_roles", [])}
            if not (user_roles & req):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def admin_required():
    """roles_required bound to the configured privileged role name."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            admin_role = get_auth_service().settings.admin_role_name
            return roles_required([admin_role])(fn)(*args, **kwargs)

        return wrapper

    return decorator
