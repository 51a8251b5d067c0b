"""
Persistence layer: SQLAlchemy models, the engine/session holder and the two
storage contracts the auth services depend on.
"""
from models.base_model import Base
from models.account import Account, ROLES
from models.refresh_token import RefreshToken
from models.revoked_token import RevokedToken, TokenClass, RevocationReason
from models.db_storage import DBStorage

__all__ = [
    "Base",
    "Account",
    "ROLES",
    "RefreshToken",
    "RevokedToken",
    "TokenClass",
    "RevocationReason",
    "DBStorage",
]
