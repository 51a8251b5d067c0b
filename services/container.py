"""
Wiring of the auth services from a config mapping.

Every collaborator receives its settings and the clock explicitly, so tests
can build the same graph with their own secrets and a controllable clock.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from models.credential_store import CredentialStore
from models.db_storage import DBStorage
from models.revocation_registry import RevocationRegistry
from services.housekeeping import SweepResult, sweep_expired_tokens
from services.lockout import LockoutController, LockoutPolicy
from services.sessions import SessionOrchestrator
from services.tokens import TokenIssuer, TokenSettings, TokenValidator
from utils.clock import Clock, utcnow
from utils.security import PasswordVerifier


@dataclass
class AuthServices:
    storage: DBStorage
    accounts: CredentialStore
    revocations: RevocationRegistry
    passwords: PasswordVerifier
    issuer: TokenIssuer
    validator: TokenValidator
    lockout: LockoutController
    sessions: SessionOrchestrator
    clock: Clock

    def sweep(self) -> SweepResult:
        return sweep_expired_tokens(self.revocations, self.accounts, self.clock())


def build_services(storage: DBStorage, config: Mapping[str, Any], clock: Clock = utcnow,
                   passwords: PasswordVerifier | None = None) -> AuthServices:
    token_settings = TokenSettings.from_mapping(config)
    passwords = passwords or PasswordVerifier.from_mapping(config)
    accounts = CredentialStore(storage)
    revocations = RevocationRegistry(
        storage,
        grace=config.get("REVOCATION_GRACE", timedelta(seconds=60)),
        clock=clock,
    )
    issuer = TokenIssuer(token_settings, clock=clock)
    validator = TokenValidator(token_settings, accounts, revocations, clock=clock)
    lockout = LockoutController(LockoutPolicy.from_mapping(config), clock=clock)
    sessions = SessionOrchestrator(
        accounts=accounts,
        revocations=revocations,
        passwords=passwords,
        issuer=issuer,
        validator=validator,
        lockout=lockout,
        clock=clock,
    )
    return AuthServices(
        storage=storage,
        accounts=accounts,
        revocations=revocations,
        passwords=passwords,
        issuer=issuer,
        validator=validator,
        lockout=lockout,
        sessions=sessions,
        clock=clock,
    )
