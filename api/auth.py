"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout

The implementation:
- Uses argon2 for password hashing (services.passwords)
- Issues short-lived JWT access tokens (HS256) and opaque refresh tokens
- Stores only refresh token hashes so they can be revoked and rotated
  (services.refresh_tokens)
- Throttles register, login and refresh per client address (api.limiter)
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.user import (
    AuthOutSchema,
    RefreshTokenSchema,
    UserCreateSchema,
    UserLoginSchema,
    UserOutSchema,
)
from utils.decorators import jwt_required
from .deps import device_context, get_auth_service
from .limiter import limiter

bp = Blueprint("auth", __name__)

user_create_schema = UserCreateSchema()
user_login_schema = UserLoginSchema()
refresh_token_schema = RefreshTokenSchema()
user_out_schema = UserOutSchema()
auth_out_schema = AuthOutSchema()


@bp.post("/auth/register")
@limiter.limit("5/minute")
def register():
    """
    Register a new user.
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
            email: { type: string }
            password: { type: string }
            first_name: { type: string }
            last_name: { type: string }
            phone_number: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Email already registered
      422:
        description: Validation error
      429:
        description: Too many requests
    """
    data = user_create_schema.load(request.get_json(silent=True) or {})
    password = data.pop("password")
    email = data.pop("email")
    user = get_auth_service().register(email, password, data)
    return jsonify({"data": user_out_schema.dump(user)}), 201


@bp.post("/auth/login")
@limiter.limit("10/minute")
def login():
    """
    Login: returns the user, an access token and a refresh token
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
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Unauthorized
      429:
        description: Too many requests
    """
    data = user_login_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().login(data["email"], data["password"], device_context())
    return jsonify({"data": auth_out_schema.dump(result)}), 200


@bp.post("/auth/refresh")
@limiter.limit("30/minute")
def refresh():
    """
    Exchange a refresh token for a new token pair (rotation)
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
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Invalid, expired or revoked refresh token
      429:
        description: Too many requests
    """
    data = refresh_token_schema.load(request.get_json(silent=True) or {})
    result = get_auth_service().refresh(data["refresh_token"], device_context())
    return jsonify({"data": auth_out_schema.dump(result)}), 200


@bp.post("/auth/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the given refresh token
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
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out (also for unknown or already revoked tokens)
      401:
        description: Token belongs to another user
    """
    data = refresh_token_schema.load(request.get_json(silent=True) or {})
    get_auth_service().logout(data["refresh_token"], g.current_user_id)
    return jsonify({"message": "Successfully logged out"}), 200
