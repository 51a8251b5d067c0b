from __future__ import annotations

from typing import Tuple

from flask import Blueprint, request, jsonify, abort

from models.schemas.account import RoleSchema
from api.auth import account_payload
from utils.decorators import auth_services, roles_required

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

role_schema = RoleSchema()


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.get("/users")
@roles_required(["admin"])
def list_users():
    """
    List accounts - admin
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
      403: { description: Forbidden }
    """
    page, limit = parse_pagination()
    rows, total = auth_services().accounts.list_accounts(page=page, limit=limit)
    return jsonify(
        {
            "data": [account_payload(row) for row in rows],
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.post("/users/<user_id>/deactivate")
@roles_required(["admin"])
def deactivate(user_id: str):
    """
    Admin-only: disable an account and revoke all of its sessions.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    account = auth_services().sessions.set_active(user_id, False)
    return jsonify({"data": account_payload(account)}), 200


@bp.post("/users/<user_id>/activate")
@roles_required(["admin"])
def activate(user_id: str):
    """
    Admin-only: re-enable an account.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    account = auth_services().sessions.set_active(user_id, True)
    return jsonify({"data": account_payload(account)}), 200


@bp.post("/users/<user_id>/role")
@roles_required(["admin"])
def set_role(user_id: str):
    """
    Admin-only: set the role of an account.
    Body: { "role": "admin" | "user" }
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
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    payload = request.get_json(silent=True) or {}
    data = role_schema.load(payload)
    account = auth_services().sessions.set_role(user_id, data["role"])
    return jsonify({"data": account_payload(account)}), 200


@bp.post("/users/<user_id>/unlock")
@roles_required(["admin"])
def unlock(user_id: str):
    """
    Admin-only: clear the failed-login lockout of an account.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
    responses:
      200: { description: OK }
    """
    account = auth_services().sessions.unlock(user_id)
    return jsonify({"data": account_payload(account)}), 200
