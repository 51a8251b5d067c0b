"""
Credential store: one Account row per user plus its refresh-token membership rows.

Membership changes are single INSERT/DELETE statements on refresh_tokens, never
a rewrite of the whole set, so two sessions of one account rotating at the same
time cannot drop each other's tokens.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from models.account import Account, normalize_email
from models.db_storage import DBStorage
from models.refresh_token import RefreshToken
from utils.clock import utcnow
from utils.exceptions import DuplicateEmail, NotFound


class CredentialStore:
    def __init__(self, storage: DBStorage):
        self._storage = storage

    @property
    def storage(self) -> DBStorage:
        return self._storage

    # lookups

    def find_by_email(self, email: str) -> Account:
        with self._storage.reading() as session:
            account = session.query(Account).filter(Account.email == normalize_email(email)).first()
        if account is None:
            raise NotFound("Account not found")
        return account

    def find_by_id(self, account_id: str) -> Account:
        with self._storage.reading() as session:
            account = session.get(Account, account_id) if account_id else None
        if account is None:
            raise NotFound("Account not found")
        return account

    def find_by_refresh_token(self, token: str) -> Account:
        """Owner of a live refresh token (membership lookup)."""
        with self._storage.reading() as session:
            account = (
                session.query(Account)
                .join(RefreshToken, RefreshToken.account_id == Account.id)
                .filter(RefreshToken.token == token)
                .first()
            )
        if account is None:
            raise NotFound("Refresh token not found")
        return account

    def has_refresh_token(self, account: Account, token: str) -> bool:
        with self._storage.reading() as session:
            hit = (
                session.query(RefreshToken.id)
                .filter(RefreshToken.account_id == account.id, RefreshToken.token == token)
                .first()
            )
        return hit is not None

    def refresh_tokens_of(self, account: Account) -> List[RefreshToken]:
        with self._storage.reading() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.account_id == account.id)
                .order_by(RefreshToken.created_at.asc())
                .all()
            )

    def list_accounts(self, page: int = 1, limit: int = 20) -> Tuple[List[Account], int]:
        with self._storage.reading() as session:
            query = session.query(Account)
            total = query.count()
            rows = (
                query.order_by(Account.created_at.asc(), Account.email.asc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        return rows, total

    def lock_for_update(self, account_id: str) -> Account:
        """Re-read an account, row-locked until the current transaction ends."""
        with self._storage.reading() as session:
            account = (
                session.query(Account)
                .filter(Account.id == account_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
        if account is None:
            raise NotFound("Account not found")
        return account

    # account writes

    def create(self, account: Account) -> Account:
        try:
            with self._storage.atomic() as session:
                if session.query(Account.id).filter(Account.email == account.email).first():
                    raise DuplicateEmail()
                session.add(account)
                session.flush()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return account

    def save(self, account: Account) -> Account:
        """Full-record update; last write wins."""
        try:
            with self._storage.atomic() as session:
                session.add(account)
                session.flush()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return account

    # membership set

    def add_refresh_token(self, account: Account, token: str, expires_at: datetime) -> RefreshToken:
        with self._storage.atomic() as session:
            row = RefreshToken(token=token, account_id=account.id, expires_at=expires_at)
            session.add(row)
            session.flush()
        return row

    def remove_refresh_token(self, account: Account, token: str) -> bool:
        """Delete one membership row; False when it was already gone."""
        with self._storage.atomic() as session:
            removed = (
                session.query(RefreshToken)
                .filter(RefreshToken.account_id == account.id, RefreshToken.token == token)
                .delete(synchronize_session=False)
            )
        return removed > 0

    def replace_refresh_token(self, account: Account, old: str, new: str, expires_at: datetime) -> bool:
        """
        Swap one membership row for another in a single transaction.
        Returns False, changing nothing, if `old` was no longer a member.
        """
        with self._storage.atomic():
            if not self.remove_refresh_token(account, old):
                return False
            self.add_refresh_token(account, new, expires_at)
        return True

    def clear_refresh_tokens(self, account: Account) -> List[RefreshToken]:
        """Drop the whole membership set in one statement; returns what was removed."""
        with self._storage.atomic() as session:
            rows = (
                session.query(RefreshToken)
                .filter(RefreshToken.account_id == account.id)
                .all()
            )
            session.query(RefreshToken).filter(
                RefreshToken.account_id == account.id
            ).delete(synchronize_session=False)
        return rows

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Drop membership rows whose token has expired on its own."""
        now = now or utcnow()
        with self._storage.atomic() as session:
            return (
                session.query(RefreshToken)
                .filter(RefreshToken.expires_at < now)
                .delete(synchronize_session=False)
            )
