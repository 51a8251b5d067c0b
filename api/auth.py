"""
Authentication blueprint:
- POST /auth/signup
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/profile
- PUT  /auth/profile
- POST /auth/password

Access tokens travel in the Authorization header, refresh tokens in the JSON
body. All decisions are made by services.sessions.SessionOrchestrator; this
module only parses requests and shapes responses.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g

from models.schemas.account import (
    SignupSchema,
    LoginSchema,
    RefreshSchema,
    LogoutSchema,
    ProfileUpdateSchema,
    PasswordChangeSchema,
    AccountOutSchema,
)
from services.sessions import SessionTokens
from api.limiter import auth_limit
from utils.decorators import auth_services, jwt_required

bp = Blueprint("auth", __name__)

signup_schema = SignupSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
profile_update_schema = ProfileUpdateSchema()
password_change_schema = PasswordChangeSchema()
account_out_schema = AccountOutSchema()


def account_payload(account) -> dict:
    data = account_out_schema.dump(account)
    data["is_locked"] = account.is_locked(auth_services().clock())
    return data


def token_payload(session: SessionTokens) -> dict:
    services = auth_services()
    return {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "token_type": "bearer",
        "expires_in": int(services.issuer.settings.access_ttl.total_seconds()),
        "refresh_expires_in": int(services.issuer.settings.refresh_ttl.total_seconds()),
        "data": account_payload(session.account),
    }


@bp.post("/signup")
def signup():
    """
    Register a new account.
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
          required: [name, email, password]
          properties:
            name: { type: string }
            email: { type: string }
            password: { type: string }
    responses:
      201:
        description: Created
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    data = signup_schema.load(payload)
    account = auth_services().sessions.signup(data["name"], data["email"], data["password"])
    return jsonify(
        {
            "message": "User registered successfully",
            "data": account_payload(account),
        }
    ), 201


@bp.post("/login")
@auth_limit
def login():
    """
    Login: return access_token and refresh_token
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
           required: [email, password]
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid email or password
      423:
        description: Account temporarily locked
      429:
        description: Too many failed attempts from this client
    """
    payload = request.get_json(silent=True) or {}
    data = login_schema.load(payload)
    session = auth_services().sessions.login(data["email"], data["password"])
    return jsonify(token_payload(session)), 200


@bp.post("/refresh")
def refresh():
    """
    Use a refresh token to obtain new access and refresh tokens (rotation).
    The presented refresh token can not be used again.
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
           required: [refresh_token]
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns a new token pair)
      401:
        description: Refresh token invalid, expired or revoked
    """
    payload = request.get_json(silent=True) or {}
    data = refresh_schema.load(payload)
    session = auth_services().sessions.refresh(data["refresh_token"])
    return jsonify(token_payload(session)), 200


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout: revokes the bearer access token and the refresh token in the body.
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
             access_token: { type: string }
    responses:
      200:
        description: Logged out
      401:
        description: Unauthorized
    """
    payload = request.get_json(silent=True) or {}
    data = logout_schema.load(payload)
    sessions = auth_services().sessions
    sessions.logout(g.current_user, access_token=g.access_token, refresh_token=data.get("refresh_token"))
    if data.get("access_token") and data["access_token"] != g.access_token:
        sessions.logout(g.current_user, access_token=data["access_token"])
    return jsonify({"message": "Logged out successfully"}), 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Logout from all devices: every refresh token of the account stops working.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: All sessions ended
      401:
        description: Unauthorized
    """
    cleared = auth_services().sessions.logout_all(g.current_user)
    return jsonify(
        {
            "message": "Logged out from all devices successfully",
            "sessions_ended": cleared,
        }
    ), 200


@bp.get("/profile")
@jwt_required()
def get_profile():
    """
    Current account.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return jsonify({"data": account_payload(g.current_user)}), 200


@bp.put("/profile")
@jwt_required()
def update_profile():
    """
    Update name and/or email of the current account.
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
             name: { type: string }
             email: { type: string }
    responses:
      200:
        description: OK
      409:
        description: Email is already taken
    """
    payload = request.get_json(silent=True) or {}
    data = profile_update_schema.load(payload)
    account = auth_services().sessions.update_profile(
        g.current_user, name=data.get("name"), email=data.get("email")
    )
    return jsonify(
        {
            "message": "Profile updated successfully",
            "data": account_payload(account),
        }
    ), 200


@bp.post("/password")
@jwt_required()
def change_password():
    """
    Change password. Every session of the account is ended, including this one.
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
           required: [current_password, new_password]
           properties:
             current_password: { type: string }
             new_password: { type: string }
    responses:
      200:
        description: Password changed; log in again
      401:
        description: Current password is incorrect
    """
    payload = request.get_json(silent=True) or {}
    data = password_change_schema.load(payload)
    auth_services().sessions.change_password(
        g.current_user,
        data["current_password"],
        data["new_password"],
        access_token=g.access_token,
    )
    return jsonify({"message": "Password changed successfully"}), 200
