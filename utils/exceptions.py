"""
Error taxonomy for the credential service.

Every error carries a stable machine code, the HTTP status it maps to at the
API boundary and whether the caller may retry. Only StorageUnavailable is
retryable.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "UNAUTHORIZED"
    status = 401
    message = "Unauthorized"
    retryable = False

    def __init__(self, message: str | None = None, **details):
        self.message = message or self.message
        self.details = details or None
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    # Same message for unknown email and wrong password
    code = "INVALID_CREDENTIALS"
    message = "Invalid email or password"


class AccountInactive(AuthError):
    code = "ACCOUNT_INACTIVE"
    status = 403
    message = "User account is deactivated"


class AccountLocked(AuthError):
    code = "ACCOUNT_LOCKED"
    status = 423
    message = "Account is temporarily locked due to multiple failed login attempts"


class AccountNotFound(AuthError):
    code = "ACCOUNT_NOT_FOUND"
    message = "Invalid token - account not found"


class DuplicateEmail(AuthError):
    code = "DUPLICATE_EMAIL"
    status = 409
    message = "User with this email already exists"


class NotFound(AuthError):
    code = "NOT_FOUND"
    status = 404
    message = "Resource not found"


class PermissionDenied(AuthError):
    code = "FORBIDDEN"
    status = 403
    message = "Access denied - insufficient permissions"


class TokenError(AuthError):
    """Base for failures of a presented bearer token."""


class TokenMalformed(TokenError):
    code = "TOKEN_MALFORMED"
    message = "Invalid token"


class TokenExpired(TokenError):
    code = "TOKEN_EXPIRED"
    message = "Token has expired"


class TokenRevoked(TokenError):
    code = "TOKEN_REVOKED"
    message = "Token has been revoked"


class TokenWrongClass(TokenError):
    code = "TOKEN_WRONG_CLASS"
    message = "Invalid token type"


class StorageUnavailable(AuthError):
    code = "STORAGE_UNAVAILABLE"
    status = 503
    message = "Credential storage is temporarily unavailable"
    retryable = True


# Codes that may be folded into a generic UNAUTHORIZED at the HTTP boundary.
# TOKEN_EXPIRED stays distinct so clients know to refresh.
COLLAPSIBLE_CODES = frozenset({
    TokenMalformed.code,
    TokenRevoked.code,
    TokenWrongClass.code,
    AccountNotFound.code,
})
