"""
Session orchestration: signup, login, refresh, logout, logout-all, and the
administrative revocation hook.

Tokens are minted in memory first and handed back only after the transaction
recording the refresh token has committed; if the write fails the pair is
dropped with the exception.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from models.account import Account, ROLES, normalize_email
from models.credential_store import CredentialStore
from models.revocation_registry import Revocation, RevocationRegistry
from models.revoked_token import RevocationReason, TokenClass
from services.lockout import LockoutController
from services.tokens import TokenIssuer, TokenPair, TokenValidator, ValidatedToken
from utils.clock import Clock, from_timestamp, utcnow
from utils.exceptions import (
    DuplicateEmail,
    InvalidCredentials,
    AccountLocked,
    NotFound,
    TokenError,
    TokenRevoked,
)
from utils.security import PasswordVerifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated-identity context handed to downstream request handlers."""
    account_id: str
    role: str
    is_active: bool
    is_locked: bool

    @classmethod
    def from_account(cls, account: Account, now=None) -> "Identity":
        return cls(
            account_id=account.id,
            role=account.role,
            is_active=bool(account.is_active),
            is_locked=account.is_locked(now),
        )


@dataclass(frozen=True)
class SessionTokens:
    tokens: TokenPair
    account: Account

    @property
    def access_token(self) -> str:
        return self.tokens.access.token

    @property
    def refresh_token(self) -> str:
        return self.tokens.refresh.token


class SessionOrchestrator:
    def __init__(
        self,
        accounts: CredentialStore,
        revocations: RevocationRegistry,
        passwords: PasswordVerifier,
        issuer: TokenIssuer,
        validator: TokenValidator,
        lockout: LockoutController,
        clock: Clock = utcnow,
    ):
        self._accounts = accounts
        self._storage = accounts.storage
        self._revocations = revocations
        self._passwords = passwords
        self._issuer = issuer
        self._validator = validator
        self._lockout = lockout
        self._clock = clock
        self._dummy_hash: Optional[str] = None

    def _burn_hash(self, password: str) -> None:
        # Unknown emails pay for one verification too, so timing does not enumerate accounts
        if self._dummy_hash is None:
            self._dummy_hash = self._passwords.hash("credential-service-dummy-password")
        self._passwords.verify(password or "", self._dummy_hash)

    # signup / profile

    def signup(self, name: str, email: str, password: str, role: str = "user") -> Account:
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}")
        account = Account(
            name=name,
            email=normalize_email(email),
            password_hash=self._passwords.hash(password),
            role=role,
        )
        self._accounts.create(account)
        logger.info("Account %s created with role %s", account.id, account.role)
        return account

    def update_profile(self, account: Account, name: Optional[str] = None, email: Optional[str] = None) -> Account:
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account.id)
            if name:
                account.name = name
            if email and normalize_email(email) != account.email:
                try:
                    self._accounts.find_by_email(email)
                except NotFound:
                    account.email = email
                else:
                    raise DuplicateEmail("Email is already taken")
            self._accounts.save(account)
        return account

    def change_password(self, account: Account, current_password: str, new_password: str,
                        access_token: Optional[str] = None) -> int:
        """Re-hash the password and end every session of the account."""
        if not self._passwords.verify(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        new_hash = self._passwords.hash(new_password)
        with self._storage.atomic():
            fresh = self._accounts.lock_for_update(account.id)
            fresh.password_hash = new_hash
            self._accounts.save(fresh)
            revoked = self.revoke_account(
                fresh.id,
                reason=RevocationReason.SECURITY,
                access_tokens=[access_token] if access_token else (),
            )
        logger.info("Password changed for account %s", account.id)
        return revoked

    # login / refresh / logout

    def login(self, email: str, password: str) -> SessionTokens:
        try:
            account = self._accounts.find_by_email(email)
        except NotFound:
            self._burn_hash(password)
            raise InvalidCredentials()
        if not account.is_active:
            self._burn_hash(password)
            raise InvalidCredentials()

        now = self._clock()
        self._lockout.check(account, now)

        if not self._passwords.verify(password, account.password_hash):
            with self._storage.atomic():
                account = self._accounts.lock_for_update(account.id)
                self._lockout.register_failure(account, now)
                self._accounts.save(account)
            raise InvalidCredentials()

        tokens = self._issuer.issue_pair(account)
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account.id)
            # A concurrent run of failures may have locked it meanwhile
            if account.is_locked(now):
                raise AccountLocked()
            self._lockout.register_success(account)
            account.last_login = now
            self._accounts.save(account)
            self._accounts.add_refresh_token(account, tokens.refresh.token, tokens.refresh.expires_at)
        logger.info("Login succeeded for account %s", account.id)
        return SessionTokens(tokens=tokens, account=account)

    def authenticate(self, access_token: str) -> ValidatedToken:
        return self._validator.validate(access_token, TokenClass.ACCESS)

    def refresh(self, refresh_token: str) -> SessionTokens:
        """Rotate: the presented token is revoked and a new pair replaces it."""
        validated = self._validator.validate(refresh_token, TokenClass.REFRESH)
        account = validated.account
        tokens = self._issuer.issue_pair(account)
        with self._storage.atomic():
            swapped = self._accounts.replace_refresh_token(
                account, refresh_token, tokens.refresh.token, tokens.refresh.expires_at
            )
            if not swapped:
                # Lost a race with another rotation of the same token
                logger.warning("Replay of superseded refresh token for account %s", account.id)
                raise TokenRevoked()
            self._revocations.record(
                refresh_token, account.id, TokenClass.REFRESH,
                validated.expires_at, RevocationReason.REFRESH,
            )
        logger.info("Rotated refresh token for account %s", account.id)
        return SessionTokens(tokens=tokens, account=account)

    def _revocation_for(self, account: Account, token: Optional[str], token_class: TokenClass,
                        reason: RevocationReason) -> Optional[Revocation]:
        # Only well-signed, unexpired tokens of this account are worth an entry
        if not token:
            return None
        try:
            claims = self._validator.decode(token, token_class)
        except TokenError:
            return None
        if claims.get("sub") != account.id:
            return None
        return Revocation(token, account.id, token_class, from_timestamp(claims["exp"]), reason)

    def logout(self, account: Account, access_token: Optional[str] = None,
               refresh_token: Optional[str] = None) -> int:
        """Best-effort: absent or unusable tokens are skipped, never an error."""
        entries = [
            entry for entry in (
                self._revocation_for(account, access_token, TokenClass.ACCESS, RevocationReason.LOGOUT),
                self._revocation_for(account, refresh_token, TokenClass.REFRESH, RevocationReason.LOGOUT),
            ) if entry is not None
        ]
        with self._storage.atomic():
            if refresh_token:
                self._accounts.remove_refresh_token(account, refresh_token)
            written = self._revocations.record_many(entries)
        logger.info("Logout for account %s (%d tokens revoked)", account.id, written)
        return written

    def logout_all(self, account: Account) -> int:
        """Empty the membership set; every outstanding refresh token stops validating."""
        removed = self._accounts.clear_refresh_tokens(account)
        logger.info("Logout-all for account %s cleared %d sessions", account.id, len(removed))
        return len(removed)

    # administrative hook

    def revoke_account(self, account_id: str, reason: RevocationReason = RevocationReason.ADMIN,
                       deactivate: bool = False, access_tokens: Iterable[str] = ()) -> int:
        """
        Clear an account's membership set and record a revocation entry for every
        refresh token it held, plus any access tokens supplied. Optionally marks
        the account inactive, which also stops its outstanding access tokens.
        """
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account_id)
            removed = self._accounts.clear_refresh_tokens(account)
            entries: List[Revocation] = [
                Revocation(row.token, account.id, TokenClass.REFRESH, row.expires_at, reason)
                for row in removed
            ]
            for token in access_tokens:
                entry = self._revocation_for(account, token, TokenClass.ACCESS, reason)
                if entry is not None:
                    entries.append(entry)
            written = self._revocations.record_many(entries)
            if deactivate:
                account.is_active = False
                self._accounts.save(account)
        logger.warning("Revoked %d tokens of account %s (reason=%s, deactivate=%s)",
                       written, account_id, RevocationReason(reason).value, deactivate)
        return written

    def set_active(self, account_id: str, active: bool) -> Account:
        if not active:
            self.revoke_account(account_id, RevocationReason.ADMIN, deactivate=True)
            return self._accounts.find_by_id(account_id)
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account_id)
            account.is_active = True
            self._accounts.save(account)
        return account

    def set_role(self, account_id: str, role: str) -> Account:
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}")
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account_id)
            account.role = role
            self._accounts.save(account)
        return account

    def unlock(self, account_id: str) -> Account:
        with self._storage.atomic():
            account = self._accounts.lock_for_update(account_id)
            self._lockout.unlock(account)
            self._accounts.save(account)
        return account
