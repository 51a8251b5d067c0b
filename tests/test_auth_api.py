import pytest

from api import create_app
from tests.conftest import PASSWORD, bearer
from utils.exceptions import StorageUnavailable


def signup(client, email="a@x.com", password=PASSWORD, name="Alice"):
    return client.post("/api/v1/auth/signup", json={"name": name, "email": email, "password": password})


def login(client, email="a@x.com", password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


@pytest.fixture
def tokens(client):
    signup(client)
    body = login(client).get_json()
    return body["access_token"], body["refresh_token"]


class TestSignup:
    def test_signup_creates_account(self, client):
        res = signup(client, email="A@X.com")
        assert res.status_code == 201
        data = res.get_json()["data"]
        assert data["email"] == "a@x.com"
        assert data["role"] == "user"
        assert data["is_locked"] is False
        assert "password" not in data and "password_hash" not in data

    def test_signup_ignores_requested_role(self, client):
        res = client.post(
            "/api/v1/auth/signup",
            json={"name": "Mallory", "email": "m@x.com", "password": PASSWORD, "role": "admin"},
        )
        assert res.status_code == 201
        assert res.get_json()["data"]["role"] == "user"

    def test_duplicate_email_conflicts(self, client):
        signup(client)
        res = signup(client, email="A@x.com")
        assert res.status_code == 409
        assert res.get_json()["error"] == "DUPLICATE_EMAIL"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"name": "Al", "email": "not-an-email", "password": PASSWORD},
            {"name": "Al", "email": "al@x.com", "password": "short"},
            {"name": "", "email": "al@x.com", "password": PASSWORD},
        ],
    )
    def test_invalid_payload(self, client, payload):
        res = client.post("/api/v1/auth/signup", json=payload)
        assert res.status_code == 422
        assert res.get_json()["error"] == "VALIDATION_ERROR"


class TestLogin:
    def test_login_returns_tokens(self, client):
        signup(client)
        res = login(client)
        assert res.status_code == 200
        body = res.get_json()
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 15 * 60
        assert body["refresh_expires_in"] == 7 * 24 * 3600
        assert body["access_token"] != body["refresh_token"]
        assert body["data"]["last_login"] is not None

    def test_bad_credentials(self, client):
        signup(client)
        for email, password in (("a@x.com", "wrong-password"), ("nobody@x.com", PASSWORD)):
            res = login(client, email, password)
            assert res.status_code == 401
            assert res.get_json()["error"] == "INVALID_CREDENTIALS"
            assert res.get_json()["message"] == "Invalid email or password"

    def test_lockout_returns_423(self, client, clock):
        signup(client)
        for _ in range(5):
            assert login(client, password="wrong-password").status_code == 401
        res = login(client)
        assert res.status_code == 423
        assert res.get_json()["error"] == "ACCOUNT_LOCKED"

        clock.advance(minutes=16)
        assert login(client).status_code == 200

    def test_storage_outage_is_retryable(self, client, app_services, monkeypatch):
        def unavailable(*args, **kwargs):
            raise StorageUnavailable()

        monkeypatch.setattr(app_services.accounts, "find_by_email", unavailable)
        res = login(client)
        assert res.status_code == 503
        assert res.headers["Retry-After"] == "5"
        assert res.get_json()["error"] == "STORAGE_UNAVAILABLE"


class TestProtectedRoutes:
    def test_profile_requires_token(self, client):
        res = client.get("/api/v1/auth/profile")
        assert res.status_code == 401
        assert res.headers["WWW-Authenticate"] == "Bearer"
        assert res.get_json()["message"] == "Access token is required"

    def test_profile(self, client, tokens):
        access, _ = tokens
        res = client.get("/api/v1/auth/profile", headers=bearer(access))
        assert res.status_code == 200
        assert res.get_json()["data"]["email"] == "a@x.com"

    def test_expired_access_token(self, client, tokens, clock):
        access, _ = tokens
        clock.advance(minutes=15)
        res = client.get("/api/v1/auth/profile", headers=bearer(access))
        assert res.status_code == 401
        assert res.get_json()["error"] == "TOKEN_EXPIRED"

    def test_refresh_token_is_not_an_access_token(self, client, tokens):
        _, refresh = tokens
        res = client.get("/api/v1/auth/profile", headers=bearer(refresh))
        assert res.status_code == 401
        assert res.get_json()["error"] == "TOKEN_MALFORMED"

    def test_update_profile(self, client, tokens):
        access, _ = tokens
        signup(client, email="b@x.com", name="Bob")
        res = client.put("/api/v1/auth/profile", headers=bearer(access), json={"name": "Alice Liddell"})
        assert res.status_code == 200
        assert res.get_json()["data"]["name"] == "Alice Liddell"

        res = client.put("/api/v1/auth/profile", headers=bearer(access), json={"email": "B@x.com"})
        assert res.status_code == 409


class TestRefreshAndLogout:
    def test_refresh_rotates(self, client, tokens):
        _, refresh = tokens
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert res.status_code == 200
        rotated = res.get_json()
        assert rotated["refresh_token"] != refresh

        replay = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert replay.status_code == 401
        assert replay.get_json()["error"] == "TOKEN_REVOKED"

        again = client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert again.status_code == 200

    def test_refresh_requires_body(self, client):
        res = client.post("/api/v1/auth/refresh", json={})
        assert res.status_code == 422

    def test_logout_revokes_presented_tokens(self, client, tokens):
        access, refresh = tokens
        res = client.post("/api/v1/auth/logout", headers=bearer(access), json={"refresh_token": refresh})
        assert res.status_code == 200

        assert client.get("/api/v1/auth/profile", headers=bearer(access)).status_code == 401
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert res.get_json()["error"] == "TOKEN_REVOKED"

    def test_logout_without_refresh_token(self, client, tokens):
        access, refresh = tokens
        assert client.post("/api/v1/auth/logout", headers=bearer(access)).status_code == 200
        assert client.post("/api/v1/auth/refresh", json={"refresh_token": refresh}).status_code == 200

    def test_logout_all(self, client, tokens):
        access, refresh_a = tokens
        refresh_b = login(client).get_json()["refresh_token"]

        res = client.post("/api/v1/auth/logout-all", headers=bearer(access))
        assert res.status_code == 200
        assert res.get_json()["sessions_ended"] == 2

        for refresh in (refresh_a, refresh_b):
            res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
            assert res.status_code == 401
            assert res.get_json()["error"] == "TOKEN_REVOKED"

    def test_change_password(self, client, tokens):
        access, refresh = tokens
        res = client.post(
            "/api/v1/auth/password",
            headers=bearer(access),
            json={"current_password": PASSWORD, "new_password": "NewSecret456"},
        )
        assert res.status_code == 200
        assert client.get("/api/v1/auth/profile", headers=bearer(access)).status_code == 401
        assert client.post("/api/v1/auth/refresh", json={"refresh_token": refresh}).status_code == 401
        assert login(client, password="NewSecret456").status_code == 200

    def test_change_password_wrong_current(self, client, tokens):
        access, _ = tokens
        res = client.post(
            "/api/v1/auth/password",
            headers=bearer(access),
            json={"current_password": "wrong-password", "new_password": "NewSecret456"},
        )
        assert res.status_code == 401
        assert res.get_json()["message"] == "Current password is incorrect"


class TestCollapsedErrors:
    @pytest.fixture
    def client(self, storage, config, clock, passwords):
        app = create_app(
            "testing",
            overrides=dict(config, COLLAPSE_TOKEN_ERRORS=True),
            storage=storage,
            clock=clock,
            passwords=passwords,
        )
        return app.test_client()

    def test_malformed_and_revoked_collapse(self, client, tokens):
        access, refresh = tokens
        res = client.get("/api/v1/auth/profile", headers=bearer("garbage"))
        assert res.get_json()["error"] == "UNAUTHORIZED"

        client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        res = client.post("/api/v1/auth/refresh", json={"refresh_token": refresh})
        assert res.status_code == 401
        assert res.get_json()["error"] == "UNAUTHORIZED"

    def test_expiry_stays_distinct(self, client, tokens, clock):
        access, _ = tokens
        clock.advance(hours=1)
        res = client.get("/api/v1/auth/profile", headers=bearer(access))
        assert res.get_json()["error"] == "TOKEN_EXPIRED"


def test_health(client):
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json()["database"] == "ok"


def test_unknown_route(client):
    res = client.get("/api/v1/nope")
    assert res.status_code == 404
    assert res.get_json()["error"] == "NOT_FOUND"


class TestLoginRateLimit:
    @pytest.fixture
    def client(self, storage, config, clock, passwords):
        app = create_app(
            "testing",
            overrides=dict(config, RATELIMIT_ENABLED=True, AUTH_RATE_LIMIT="3 per 15 minutes"),
            storage=storage,
            clock=clock,
            passwords=passwords,
        )
        return app.test_client()

    def test_failed_attempts_are_throttled(self, client):
        signup(client)
        for _ in range(3):
            assert login(client, password="wrong-password").status_code == 401

        res = login(client)
        assert res.status_code == 429
        assert res.get_json()["error"] == "RATE_LIMITED"
        assert res.get_json()["status"] == 429

    def test_key_includes_email(self, client):
        signup(client)
        signup(client, email="b@x.com", name="Bob")
        for _ in range(3):
            login(client, email="A@x.com", password="wrong-password")
        assert login(client, email="a@x.com").status_code == 429
        assert login(client, email="b@x.com").status_code == 200

    def test_successful_logins_are_not_counted(self, client):
        signup(client)
        for _ in range(5):
            assert login(client).status_code == 200
