"""
Failed-login lockout.

The whole state machine lives in two Account columns, failed_attempts and
lock_until:

    Open   -- failure, count < threshold  --> Open
    Open   -- failure, count >= threshold --> Locked (lock_until = now + duration)
    Locked -- any attempt                 --> Locked, rejected before the password check
    Locked -- lock_until passes           --> Open with the counter treated as 0
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Mapping

from models.account import Account
from utils.clock import Clock, as_utc, utcnow
from utils.exceptions import AccountLocked

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockoutPolicy:
    threshold: int = 5
    duration: timedelta = timedelta(minutes=15)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "LockoutPolicy":
        return cls(
            threshold=int(config.get("LOCKOUT_THRESHOLD", 5)),
            duration=config.get("LOCKOUT_DURATION", timedelta(minutes=15)),
        )


class LockoutController:
    def __init__(self, policy: LockoutPolicy = LockoutPolicy(), clock: Clock = utcnow):
        self._policy = policy
        self._clock = clock

    @property
    def policy(self) -> LockoutPolicy:
        return self._policy

    def check(self, account: Account, now: datetime | None = None) -> None:
        """Reject an attempt on a locked account without looking at the password."""
        if account.is_locked(now or self._clock()):
            raise AccountLocked()

    def _expire_stale_lock(self, account: Account, now: datetime) -> None:
        lock_until = as_utc(account.lock_until)
        if lock_until is not None and lock_until <= now:
            account.failed_attempts = 0
            account.lock_until = None

    def register_failure(self, account: Account, now: datetime | None = None) -> bool:
        """Count one failed attempt. Returns True if this attempt locked the account."""
        now = now or self._clock()
        if account.is_locked(now):
            return False
        self._expire_stale_lock(account, now)
        account.failed_attempts = (account.failed_attempts or 0) + 1
        if account.failed_attempts >= self._policy.threshold:
            account.lock_until = now + self._policy.duration
            logger.warning(
                "Account %s locked until %s after %d failed attempts",
                account.id, account.lock_until.isoformat(), account.failed_attempts,
            )
            return True
        logger.warning("Failed login for account %s (%d/%d)",
                       account.id, account.failed_attempts, self._policy.threshold)
        return False

    def register_success(self, account: Account) -> None:
        account.failed_attempts = 0
        account.lock_until = None

    def unlock(self, account: Account) -> None:
        """Administrative reset of the lockout state."""
        self.register_success(account)
