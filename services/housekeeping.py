"""Storage reclamation for entries whose tokens have expired naturally."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.credential_store import CredentialStore
from models.revocation_registry import RevocationRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    revocations: int
    refresh_tokens: int


def sweep_expired_tokens(registry: RevocationRegistry, accounts: CredentialStore,
                         now: Optional[datetime] = None) -> SweepResult:
    result = SweepResult(
        revocations=registry.sweep_expired(now),
        refresh_tokens=accounts.sweep_expired(now),
    )
    logger.info("Token sweep removed %d revocation entries and %d refresh tokens",
                result.revocations, result.refresh_tokens)
    return result
