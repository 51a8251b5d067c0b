import os
import secrets
import sys
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

os.environ.setdefault("APP_ENV", "testing")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api import create_app  # noqa: E402
from models import DBStorage  # noqa: E402
from services import build_services  # noqa: E402
from utils.security import PasswordVerifier  # noqa: E402

PASSWORD = "Secret123"


class FrozenClock:
    """Wall clock that only moves when a test advances it."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage():
    db = DBStorage("sqlite://")
    db.reload()
    yield db
    db.close()
    db.drop_all()


@pytest.fixture(scope="session")
def passwords():
    # Minimal argon2 cost; production uses the library defaults
    return PasswordVerifier(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def config():
    return {
        "ACCESS_TOKEN_SECRET": secrets.token_hex(32),
        "REFRESH_TOKEN_SECRET": secrets.token_hex(32),
        "JWT_ALGORITHM": "HS256",
        "JWT_ISSUER": "credential-service-test",
        "ACCESS_TOKEN_EXPIRES": timedelta(minutes=15),
        "REFRESH_TOKEN_EXPIRES": timedelta(days=7),
        "LOCKOUT_THRESHOLD": 5,
        "LOCKOUT_DURATION": timedelta(minutes=15),
        "REVOCATION_GRACE": timedelta(seconds=60),
    }


@pytest.fixture
def services(storage, config, clock, passwords):
    return build_services(storage, config, clock=clock, passwords=passwords)


@pytest.fixture
def account(services):
    return services.sessions.signup("Alice", "a@x.com", PASSWORD)


@pytest.fixture
def app(storage, config, clock, passwords):
    application = create_app(
        "testing",
        overrides=dict(config),
        storage=storage,
        clock=clock,
        passwords=passwords,
    )
    yield application


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_services(app):
    return app.extensions["auth"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def file_storage(tmp_path):
    # Separate connections per thread; the in-memory StaticPool shares one
    db = DBStorage(f"sqlite:///{tmp_path / 'credentials.db'}")
    db.reload()
    yield db
    db.close()
    db.drop_all()
    db.engine.dispose()


@pytest.fixture
def file_services(file_storage, config, clock, passwords):
    return build_services(file_storage, config, clock=clock, passwords=passwords)


def run_concurrently(storage, calls):
    """Start every call at the same time on its own thread; return outcomes in order."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def worker(index, call):
        barrier.wait()
        try:
            outcomes[index] = call()
        except Exception as exc:  # noqa: BLE001
            outcomes[index] = exc
        finally:
            storage.close()

    threads = [threading.Thread(target=worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return outcomes
