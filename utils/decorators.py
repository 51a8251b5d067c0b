from __future__ import annotations
from functools import wraps
from typing import Optional

from flask import request, g, current_app

from services.sessions import Identity
from utils.exceptions import PermissionDenied, TokenMalformed


def auth_services():
    """The AuthServices bundle created by api.create_app."""
    return current_app.extensions["auth"]


def bearer_token() -> Optional[str]:
    auth = request.headers.get("Authorization", "")
    if not auth.startswith("Bearer "):
        return None
    token = auth.split(" ", 1)[1].strip()
    return token or None


def current_identity() -> Optional[Identity]:
    return getattr(g, "identity", None)


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = bearer_token()
            if token is None:
                raise TokenMalformed("Access token is required")
            services = auth_services()
            validated = services.sessions.authenticate(token)

            # identity context for downstream handlers
            g.current_user = validated.account
            g.access_token = token
            g.identity = Identity.from_account(validated.account, services.clock())
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user has ANY of the required roles.
    """
    req = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            identity = current_identity()
            if identity is None or identity.role not in req:
                raise PermissionDenied()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
