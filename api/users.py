from __future__ import annotations

from flask import Blueprint, request, jsonify, g, abort

from models import storage
from models.role import RoleUser
from models.user import User
from models.schemas.user import RoleAssignSchema, UserOutSchema
from utils.decorators import jwt_required, admin_required, get_auth_service

bp = Blueprint("users", __name__)

role_assign_schema = RoleAssignSchema()
user_out_schema = UserOutSchema()


def user_payload(user: User) -> dict:
    data = user_out_schema.dump(user)
    data["roles"] = sorted(get_auth_service().roles.resolve(user.id))
    return data


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info with their active roles.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": user_payload(g.current_user)}), 200


@bp.post("/users/<int:user_id>/roles")
@admin_required()
def assign_role(user_id: int):
    """
    Admin-only: grant a role to a user (reactivates a previous assignment).
    Body: { "role_name": "admin" }
    Takes effect on the user's next login or token refresh.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: integer
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role_name: { type: string }
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
      404: { description: User or role not found }
    """
    data = role_assign_schema.load(request.get_json(silent=True) or {})

    user = storage.get(User, user_id)
    if not user:
        abort(404)
    role = get_auth_service().roles.find_role(data["role_name"])
    if not role:
        abort(404)

    session = storage.get_session()
    assignment = (
        session.query(RoleUser)
        .filter(RoleUser.user_id == user.id, RoleUser.role_id == role.id)
        .first()
    )
    if assignment:
        assignment.is_active = True
    else:
        assignment = RoleUser(user_id=user.id, role_id=role.id, is_active=True)
    storage.new(assignment)
    storage.save()
    return jsonify({"data": user_payload(user)}), 200


@bp.delete("/users/<int:user_id>/roles/<role_name>")
@admin_required()
def remove_role(user_id: int, role_name: str):
    """
    Admin-only: deactivate a user's role assignment
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: path
        name: role_name
        type: string
        required: true
    responses:
      200: { description: OK }
      403: { description: Insufficient role }
      404: { description: Assignment not found }
    """
    user = storage.get(User, user_id)
    role = get_auth_service().roles.find_role(role_name)
    if not user or not role:
        abort(404)

    session = storage.get_session()
    assignment = (
        session.query(RoleUser)
        .filter(RoleUser.user_id == user.id, RoleUser.role_id == role.id, RoleUser.is_active.is_(True))
        .first()
    )
    if not assignment:
        abort(404)
    assignment.is_active = False
    storage.new(assignment)
    storage.save()
    return jsonify({"data": user_payload(user)}), 200
