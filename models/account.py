from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String, Boolean, Integer, DateTime, CheckConstraint
from sqlalchemy.orm import validates

from models.base_model import Base, BaseModel
from utils.clock import as_utc, utcnow
from utils.exceptions import AccountInactive, AccountLocked

ROLES = ("user", "admin")


def normalize_email(email):
    """Canonical form used for storage and lookup: trimmed, lower-cased."""
    return email.strip().lower() if isinstance(email, str) else email


class Account(BaseModel, Base):
    __tablename__ = "accounts"

    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(16), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    failed_attempts = Column(Integer, nullable=False, default=0)
    lock_until = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('user', 'admin')", name="ck_accounts_role"),
        CheckConstraint("failed_attempts >= 0", name="ck_accounts_failed_attempts_nonnegative"),
    )

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("role", "user")
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("failed_attempts", 0)
        super().__init__(*args, **kwargs)

    @validates("email")
    def _lower_email(self, key, value):
        return normalize_email(value)

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def is_locked(self, now: Optional[datetime] = None) -> bool:
        """Locked exactly when lock_until is set and still in the future."""
        lock_until = as_utc(self.lock_until)
        return lock_until is not None and lock_until > (now or utcnow())

    def ensure_usable(self, now: Optional[datetime] = None) -> None:
        """Single gate applied by every login and token validation path."""
        if not self.is_active:
            raise AccountInactive()
        if self.is_locked(now):
            raise AccountLocked()

    def __repr__(self):
        return f"<Account id={self.id} role={self.role}>"
