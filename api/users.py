from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.user import (
    AdminUserCreateSchema,
    AdminUserUpdateSchema,
    ProfileUpdateSchema,
    UserListQuerySchema,
    UserOutSchema,
)
from utils.decorators import jwt_required, capability_required
from utils.permissions import USERS_CREATE, USERS_DELETE, USERS_LIST, USERS_UPDATE
from .deps import get_user_service

bp = Blueprint("users", __name__)

admin_create_schema = AdminUserCreateSchema()
admin_update_schema = AdminUserUpdateSchema()
profile_update_schema = ProfileUpdateSchema()
list_query_schema = UserListQuerySchema()
user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)


@bp.get("/users")
@capability_required(USERS_LIST)
def list_users():
    """
    List users (filters: role, is_active, include_deleted; paginated)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - { in: query, name: role, type: string, enum: [ADMIN, REVIEWER, APPLICANT] }
      - { in: query, name: is_active, type: boolean }
      - { in: query, name: include_deleted, type: boolean }
      - { in: query, name: page, type: integer }
      - { in: query, name: limit, type: integer }
    responses:
      200: { description: OK }
      403: { description: Insufficient permissions }
    """
    query = list_query_schema.load(request.args.to_dict())
    rows, total = get_user_service().list_users(**query)
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": query["page"], "limit": query["limit"], "total": total},
        }
    ), 200


@bp.post("/users")
@capability_required(USERS_CREATE)
def create_user():
    """
    Admin: create a user with an explicit role
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      201: { description: Created }
      409: { description: Email already registered }
    """
    data = admin_create_schema.load(request.get_json(silent=True) or {})
    email = data.pop("email")
    password = data.pop("password")
    role = data.pop("role")
    user = get_user_service().admin_create_user(email, password, role, data)
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.get("/users/me")
@jwt_required()
def me():
    """
    Get current user info
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
    user = get_user_service().get_user(g.current_user_id)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.patch("/users/me")
@jwt_required()
def update_me():
    """
    Update own profile (email, password, names, phone)
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
      409: { description: Email already in use }
    """
    changes = profile_update_schema.load(request.get_json(silent=True) or {})
    user = get_user_service().update_profile(g.current_user_id, changes)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.patch("/users/<user_id>")
@capability_required(USERS_UPDATE)
def admin_update_user(user_id: str):
    """
    Admin: change role, active flag or email-verified flag
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - { in: path, name: user_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: User not found }
    """
    changes = admin_update_schema.load(request.get_json(silent=True) or {})
    user = get_user_service().admin_update_user(user_id, **changes)
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.delete("/users/<user_id>")
@capability_required(USERS_DELETE)
def delete_user(user_id: str):
    """
    Admin: soft delete a user and revoke their refresh tokens
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - { in: path, name: user_id, type: string, required: true }
    responses:
      200: { description: OK }
      404: { description: User not found }
    """
    get_user_service().soft_delete_user(user_id)
    return jsonify({"message": "User deleted successfully"}), 200
