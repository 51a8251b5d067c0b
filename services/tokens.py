"""
Token issuance and validation.

Access and refresh tokens are HS256 JWTs signed with two distinct secrets,
so a leaked secret of one class cannot mint tokens of the other. Both carry
a "type" claim and a random "jti" so no two tokens are ever byte-identical.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Mapping

import jwt

from models.account import Account
from models.credential_store import CredentialStore
from models.revocation_registry import RevocationRegistry
from models.revoked_token import TokenClass
from utils.clock import Clock, from_timestamp, utcnow
from utils.exceptions import (
    AccountNotFound,
    NotFound,
    TokenExpired,
    TokenMalformed,
    TokenRevoked,
    TokenWrongClass,
)
from utils.security import decode_signed, encode_token, generate_jti

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenSettings:
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=15)
    refresh_ttl: timedelta = timedelta(days=7)
    issuer: str = "credential-service"

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "TokenSettings":
        return cls(
            access_secret=config["ACCESS_TOKEN_SECRET"],
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl=config.get("ACCESS_TOKEN_EXPIRES", timedelta(minutes=15)),
            refresh_ttl=config.get("REFRESH_TOKEN_EXPIRES", timedelta(days=7)),
            issuer=config.get("JWT_ISSUER", "credential-service"),
        )

    def secret_for(self, token_class: TokenClass) -> str:
        if token_class == TokenClass.ACCESS:
            return self.access_secret
        return self.refresh_secret

    def ttl_for(self, token_class: TokenClass) -> timedelta:
        if token_class == TokenClass.ACCESS:
            return self.access_ttl
        return self.refresh_ttl


@dataclass(frozen=True)
class IssuedToken:
    token: str
    token_class: TokenClass
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    access: IssuedToken
    refresh: IssuedToken


class TokenIssuer:
    def __init__(self, settings: TokenSettings, clock: Clock = utcnow):
        self._settings = settings
        self._clock = clock

    @property
    def settings(self) -> TokenSettings:
        return self._settings

    def _issue(self, account: Account, token_class: TokenClass, extra: Dict[str, Any] | None = None) -> IssuedToken:
        now = self._clock()
        # JWT timestamps are whole seconds; keep expires_at identical to the claim
        iat = int(now.timestamp())
        exp = iat + int(self._settings.ttl_for(token_class).total_seconds())
        payload = {
            "iss": self._settings.issuer,
            "sub": str(account.id),
            "iat": iat,
            "exp": exp,
            "type": token_class.value,
            "jti": generate_jti(),
        }
        if extra:
            payload.update(extra)
        token = encode_token(payload, self._settings.secret_for(token_class), self._settings.algorithm)
        return IssuedToken(token=token, token_class=token_class, expires_at=from_timestamp(exp))

    def issue_access(self, account: Account) -> IssuedToken:
        return self._issue(account, TokenClass.ACCESS, {"role": account.role})

    def issue_refresh(self, account: Account) -> IssuedToken:
        """
        Mint a refresh token. The token is not live until its membership row
        is committed; SessionOrchestrator owns that step.
        """
        return self._issue(account, TokenClass.REFRESH)

    def issue_pair(self, account: Account) -> TokenPair:
        return TokenPair(access=self.issue_access(account), refresh=self.issue_refresh(account))


@dataclass(frozen=True)
class ValidatedToken:
    token: str
    token_class: TokenClass
    account: Account
    claims: Dict[str, Any]

    @property
    def expires_at(self) -> datetime:
        return from_timestamp(self.claims["exp"])


class TokenValidator:
    """
    Resolve a presented token to a live account, or raise a typed TokenError.

    Checks run in a fixed order and stop at the first failure: revocation,
    signature/structure, expiry, class, account state, and for refresh
    tokens, membership in the owner's live set.
    """

    def __init__(self, settings: TokenSettings, accounts: CredentialStore,
                 revocations: RevocationRegistry, clock: Clock = utcnow):
        self._settings = settings
        self._accounts = accounts
        self._revocations = revocations
        self._clock = clock

    def decode(self, token: str, expected_class: TokenClass) -> Dict[str, Any]:
        """Signature, expiry and class checks only; no storage access."""
        expected_class = TokenClass(expected_class)
        if not token or not isinstance(token, str):
            raise TokenMalformed()
        try:
            claims = decode_signed(token, self._settings.secret_for(expected_class), self._settings.algorithm)
        except jwt.InvalidTokenError as exc:
            raise TokenMalformed() from exc
        try:
            exp = float(claims["exp"])
        except (TypeError, ValueError) as exc:
            raise TokenMalformed() from exc
        # Only reached with a verified signature, so exp is not attacker-controlled
        if self._clock().timestamp() >= exp:
            raise TokenExpired()
        if claims.get("type") != expected_class.value:
            raise TokenWrongClass()
        return claims

    def validate(self, token: str, expected_class: TokenClass) -> ValidatedToken:
        expected_class = TokenClass(expected_class)
        if self._revocations.is_revoked(token):
            raise TokenRevoked()
        claims = self.decode(token, expected_class)

        try:
            account = self._accounts.find_by_id(claims.get("sub"))
        except NotFound as exc:
            raise AccountNotFound() from exc
        account.ensure_usable(self._clock())

        if expected_class == TokenClass.REFRESH and not self._accounts.has_refresh_token(account, token):
            logger.warning("Refresh token for account %s is not in its live set", account.id)
            raise TokenRevoked()

        return ValidatedToken(token=token, token_class=expected_class, account=account, claims=claims)
