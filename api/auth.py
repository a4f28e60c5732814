"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh-token
- POST /auth/check-token
- GET  /auth/validate
- POST /auth/logout
- POST /auth/change-password

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens (JWT, HS256) and opaque single-use refresh tokens
- Refresh tokens are bound to the jti of the access token they were issued with
- Every login, logout and password change is written to the access log
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g, abort, current_app
from sqlalchemy.exc import SQLAlchemyError

from models import storage
from models.access_log import AccessLog
from models.person import Person
from models.role import RoleUser
from models.user import User
from models.schemas.auth import (
    RegisterSchema,
    LoginSchema,
    RefreshTokenSchema,
    CheckTokenSchema,
    ChangePasswordSchema,
    AuthResponseSchema,
    TokenValidationSchema,
)

from utils.decorators import jwt_required, get_auth_service
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)  # mounted at /api/v1/auth

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshTokenSchema()
check_token_schema = CheckTokenSchema()
change_password_schema = ChangePasswordSchema()
auth_response_schema = AuthResponseSchema()
token_validation_schema = TokenValidationSchema()

INVALID_CREDENTIALS = "Invalid username or password"


def log_event(user_id: int | None, action: str, status: bool, details: str):
    """Write an access log row. Best effort: a failure never breaks the request."""
    try:
        storage.new(AccessLog(user_id=user_id, action=action, status=status, details=details))
        storage.save()
    except SQLAlchemyError:
        logger.exception("Could not write access log", extra={"action": action, "user_id": user_id})


@bp.post("/register")
def register():
    """
    Register a new user (person + account) and log them in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            confirm_password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
            document_type: { type: string }
            document_number: { type: string }
            phone: { type: string }
    responses:
      201:
        description: Created (returns tokens)
      409:
        description: Username, email or document already registered
      422:
        description: Validation error
    """
    data = register_schema.load(request.get_json(silent=True) or {})

    session = storage.get_session()
    if session.query(User).filter(User.username == data["username"]).first():
        abort(409, description="Username already in use")
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="Email already registered")
    if session.query(Person).filter(Person.document_number == data["document_number"]).first():
        abort(409, description="Document number already registered")

    person = Person(
        first_name=data["first_name"],
        last_name=data["last_name"],
        document_type=data.get("document_type") or "CC",
        document_number=data["document_number"],
        phone=data.get("phone"),
        is_active=True,
    )
    user = User(
        username=data["username"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        person=person,
        is_active=True,
    )
    storage.new(person)
    storage.new(user)

    service = get_auth_service()
    default_role = service.roles.find_role(current_app.config.get("DEFAULT_ROLE_NAME", "user"))
    if default_role is not None:
        storage.new(RoleUser(role=default_role, user=user, is_active=True))
    storage.save()

    log_event(user.id, "Register", True, f"New user registered: {user.username}")
    auth = service.issue(user)
    return jsonify(
        {
            "message": "User registered",
            "data": auth_response_schema.dump(auth),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return access token, refresh token and role redirection
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Unauthorized
      503:
        description: Tokens could not be issued, retry
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    username = data["username"]

    session = storage.get_session()
    user: User = (
        session.query(User)
        .filter(User.username == username, User.is_active.is_(True))
        .first()
    )
    if not user:
        logger.info("Failed login", extra={"username": username})
        log_event(None, "Login failed", False, f"Unknown user - username: {username}")
        abort(401, description=INVALID_CREDENTIALS)
    if not verify_password(data["password"], user.password_hash):
        logger.info("Failed login", extra={"username": username})
        log_event(user.id, "Login failed", False, f"Wrong password - username: {username}")
        abort(401, description=INVALID_CREDENTIALS)

    auth = get_auth_service().issue(user)
    log_event(user.id, "Login succeeded", True, f"Login - username: {username}")
    return jsonify(auth_response_schema.dump(auth)), 200


@bp.post("/refresh-token")
def refresh_token():
    """
    Exchange an access token (may be expired) and its refresh token for a new pair.
    The refresh token is single use.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      401:
        description: Invalid token or refresh token
      503:
        description: Tokens could not be issued, retry
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    auth = get_auth_service().refresh(data["token"], data["refresh_token"])
    if auth is None:
        abort(401, description="Invalid token or refresh token")
    return jsonify(auth_response_schema.dump(auth)), 200


@bp.post("/check-token")
def check_token():
    """
    Check a token without requiring it to be valid.
    Expired tokens report who they belonged to with remaining_seconds = 0.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             token: { type: string }
    responses:
      200:
        description: Validation result
      422:
        description: Token missing
    """
    payload = request.get_json(silent=True)
    if isinstance(payload, str):
        payload = {"token": payload}
    data = check_token_schema.load(payload or {})
    result = get_auth_service().validate(data["token"])
    return jsonify(token_validation_schema.dump(result)), 200


@bp.get("/validate")
@jwt_required()
def validate_token():
    """
    Validate the bearer token of the current request.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Token is valid
      401:
        description: Unauthorized
    """
    result = get_auth_service().validate(g.current_token)
    return jsonify(token_validation_schema.dump(result)), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes every active refresh token of the current user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    user = g.current_user
    user_id, username = user.id, user.username
    revoked = get_auth_service().revoke_all(user_id)
    log_event(user_id, "Logout", revoked, f"Logout - username: {username}")
    return jsonify({"message": "Logged out"}), 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change the current user's password and revoke their refresh tokens
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
             confirm_new_password: { type: string }
    responses:
      200:
        description: Password changed
      400:
        description: Current password is incorrect
      401:
        description: Unauthorized
      422:
        description: Validation error
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    user: User = g.current_user
    if not verify_password(data["current_password"], user.password_hash):
        abort(400, description="Current password is incorrect")

    user.password_hash = hash_password(data["new_password"])
    user.save()
    user_id = user.id

    get_auth_service().revoke_all(user_id)
    log_event(user_id, "Change password", True, "Password updated")
    return jsonify({"message": "Password updated"}), 200
