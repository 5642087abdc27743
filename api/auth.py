"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- GET  /auth/profile

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues short-lived access tokens and longer-lived refresh tokens (JWTs, separate secrets)
- Stores one refresh token per user so it can be rotated on use and revoked
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from models.schemas.user import (
    LoginSchema,
    ProfileSchema,
    RefreshSchema,
    RegisterSchema,
    UserOutSchema,
)
from models.user import UserRole
from services.auth_service import AuthService, IssuedTokens
from services.errors import Forbidden
from utils.decorators import current_identity, jwt_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

register_schema = RegisterSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
user_out_schema = UserOutSchema()
profile_schema = ProfileSchema()


def _service() -> AuthService:
    return current_app.extensions["auth_service"]


def _tokens_response(message: str, tokens: IssuedTokens):
    return jsonify(
        {
            "message": message,
            "accessToken": tokens.access_token,
            "refreshToken": tokens.refresh_token,
            "expiresIn": tokens.expires_in,
        }
    ), 200


@bp.post("/register")
def register():
    """
    Register a new user.
    Asking for the admin role requires an admin bearer token.
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
          required: [username, email, password]
          properties:
            username: { type: string }
            email: { type: string }
            password: { type: string }
            role: { type: string, enum: [user, admin] }
    responses:
      201:
        description: Created
      400:
        description: Missing fields or username taken
      401:
        description: Admin role requested without a token
      403:
        description: Admin role requested by a non-admin
    """
    data = register_schema.load(request.get_json(silent=True) or {})
    role = UserRole(data["role"])
    if role is UserRole.ADMIN:
        requester = current_identity()
        if requester.role != UserRole.ADMIN.value:
            raise Forbidden("Only admins may create admin accounts")

    user = _service().register(data["username"], data["email"], data["password"], role)
    return jsonify(
        {
            "message": "Registration successful",
            "user": user_out_schema.dump(user),
        }
    ), 201


@bp.post("/login")
def login():
    """
    Login: return accessToken and refreshToken
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
           required: [username, password]
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      400:
        description: Missing fields or invalid credentials
    """
    data = login_schema.load(request.get_json(silent=True) or {})
    tokens = _service().login(data["username"], data["password"])
    return _tokens_response("Login successful", tokens)


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation)
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
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      400:
        description: refreshToken missing
      403:
        description: Invalid, revoked or expired refresh token
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    tokens = _service().refresh(data["refresh_token"])
    return _tokens_response("Tokens refreshed successfully", tokens)


@bp.post("/logout")
def logout():
    """
    Logout: revokes the refresh token
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
           required: [refreshToken]
           properties:
             refreshToken: { type: string }
    responses:
      204:
        description: ""
      400:
        description: refreshToken missing
    """
    data = refresh_schema.load(request.get_json(silent=True) or {})
    _service().logout(data["refresh_token"])
    return ("", 204)


@bp.get("/profile")
@jwt_required()
def profile(identity):
    """
    Get the profile of the authenticated user
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Missing or malformed Authorization header
      403:
        description: Invalid or expired access token
      404:
        description: User no longer exists
    """
    user = _service().get_profile(identity)
    return jsonify(profile_schema.dump(user)), 200
