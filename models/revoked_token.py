from enum import Enum

from sqlalchemy import Column, String, Text, DateTime, Index
from sqlalchemy.sql import func
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base


class TokenClass(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class RevocationReason(str, Enum):
    LOGOUT = "logout"
    REFRESH = "refresh"
    SECURITY = "security"
    ADMIN = "admin"


class RevokedToken(Base):
    """A token explicitly invalidated before its natural expiry, keyed by its raw encoding."""
    __tablename__ = "revoked_tokens"

    token = Column(Text, primary_key=True)
    token_class = Column(SAEnum(TokenClass, name="token_class", native_enum=False), nullable=False)
    # No FK: entries outlive nothing but the token, and bulk revocation must not depend on the account row
    account_id = Column(String(36), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    reason = Column(
        SAEnum(RevocationReason, name="revocation_reason", native_enum=False),
        nullable=False,
        default=RevocationReason.LOGOUT,
    )
    revoked_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_revoked_tokens_expires_at", "expires_at"),
        Index("ix_revoked_tokens_account_id", "account_id"),
    )

    def __repr__(self):
        return f"<RevokedToken account={self.account_id} class={self.token_class} reason={self.reason}>"
