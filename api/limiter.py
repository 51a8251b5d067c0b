"""
Per-client throttling of authentication attempts.

Works next to the per-account lockout: the lockout protects one account from
many clients, the limiter protects the service from one client trying many
passwords. Keys combine the client address with the normalised email, and
only failed attempts are counted.
"""
from flask import current_app, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from models.account import normalize_email

limiter = Limiter(key_func=get_remote_address)


def auth_rate_limit() -> str:
    return current_app.config.get("AUTH_RATE_LIMIT", "5 per 15 minutes")


def login_rate_key() -> str:
    payload = request.get_json(silent=True) or {}
    email = normalize_email(payload.get("email")) if isinstance(payload, dict) else None
    return f"{get_remote_address()}:{email or get_remote_address()}"


def failed_attempt(response) -> bool:
    return response.status_code >= 400


auth_limit = limiter.limit(auth_rate_limit, key_func=login_rate_key, deduct_when=failed_attempt)
