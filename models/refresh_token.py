"""
RefreshToken model: one row per live refresh token of an account.

The rows are the account's membership set. Rotation, logout and logout-all
insert and delete rows individually, so concurrent sessions of the same
account never overwrite each other's tokens.
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Index

from models.base_model import BaseModel, Base


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(Text, nullable=False, unique=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_refresh_tokens_account_id", "account_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )

    def __repr__(self):
        return f"<RefreshToken account={self.account_id} expires_at={self.expires_at}>"
