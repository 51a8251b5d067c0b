"""
Revocation registry: explicitly invalidated tokens, looked up by raw encoding.

Entries are only useful while the token could still pass its own expiry check,
so inserts of already-expired tokens are skipped and sweep_expired() removes
entries once their token has been expired for longer than the grace period.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError

from models.db_storage import DBStorage
from models.revoked_token import RevokedToken, TokenClass, RevocationReason
from utils.clock import Clock, as_utc, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Revocation:
    token: str
    account_id: str
    token_class: TokenClass
    expires_at: datetime
    reason: RevocationReason = RevocationReason.LOGOUT


class RevocationRegistry:
    def __init__(self, storage: DBStorage, grace: timedelta = timedelta(seconds=60), clock: Clock = utcnow):
        self._storage = storage
        self._grace = grace
        self._clock = clock

    def is_revoked(self, token: str) -> bool:
        if not token:
            return False
        with self._storage.reading() as session:
            return session.get(RevokedToken, token) is not None

    def record(self, token: str, account_id: str, token_class: TokenClass,
               expires_at: datetime, reason: RevocationReason = RevocationReason.LOGOUT) -> bool:
        """
        Insert one entry. Returns False when nothing was written: the token is
        already past its expiry, or it is already recorded.
        """
        return self.record_many([Revocation(token, account_id, TokenClass(token_class),
                                            expires_at, RevocationReason(reason))]) == 1

    def _insert_ignoring_duplicates(self, session, values: dict) -> bool:
        """INSERT that leaves an existing entry untouched. True when a row was written."""
        dialect = session.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            insert = sqlite_insert if dialect == "sqlite" else pg_insert
            stmt = insert(RevokedToken).values(**values).on_conflict_do_nothing(index_elements=["token"])
            return session.execute(stmt).rowcount == 1
        try:
            with session.begin_nested():
                session.add(RevokedToken(**values))
        except IntegrityError:
            return False
        return True

    def record_many(self, entries: Iterable[Revocation]) -> int:
        """
        Insert entries in one transaction, skipping expired tokens and tokens
        already recorded, including by a concurrent writer. Returns the count written.
        """
        now = self._clock()
        written = 0
        seen = set()
        with self._storage.atomic() as session:
            for entry in entries:
                if as_utc(entry.expires_at) <= now or entry.token in seen:
                    continue
                seen.add(entry.token)
                written += self._insert_ignoring_duplicates(session, {
                    "token": entry.token,
                    "account_id": entry.account_id,
                    "token_class": TokenClass(entry.token_class),
                    "expires_at": entry.expires_at,
                    "reason": RevocationReason(entry.reason),
                    "revoked_at": now,
                })
        return written

    def entries_for(self, account_id: str) -> List[RevokedToken]:
        with self._storage.reading() as session:
            return (
                session.query(RevokedToken)
                .filter(RevokedToken.account_id == account_id)
                .order_by(RevokedToken.revoked_at.asc())
                .all()
            )

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Delete entries whose token expired more than `grace` ago. Idempotent."""
        cutoff = (now or self._clock()) - self._grace
        with self._storage.atomic() as session:
            count = (
                session.query(RevokedToken)
                .filter(RevokedToken.expires_at < cutoff)
                .delete(synchronize_session=False)
            )
        if count:
            logger.info("Swept %d expired revocation entries", count)
        return count
