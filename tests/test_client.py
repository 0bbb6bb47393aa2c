import json
from dataclasses import replace

import pytest
import requests

from authcore.auth.security import TokenIssuer
from authcore.client import (
    AuthClient,
    FileSessionStore,
    NotAuthenticated,
    RequestFailed,
    SessionManager,
    SessionRejected,
    SessionState,
    StoredSession,
    peek_expiry,
)
from authcore.errors import DuplicateUser, InvalidCredentials, StoreUnavailable

from conftest import BASE_TIME, FakeClock


class FakeResponse:
    def __init__(self, status_code, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload) if payload is not None else ""
        self.content = self.text.encode()

    def json(self):
        if self._payload is None:
            raise ValueError("no body")
        return self._payload


class FakeHttp:
    """Replays canned responses (or raises) and records requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt


@pytest.fixture()
def store(tmp_path):
    return FileSessionStore(tmp_path / "session.json")


@pytest.fixture()
def token(cfg):
    return TokenIssuer(cfg, clock=FakeClock()).issue("alice")


# -----------------------------
# Storage + local session state
# -----------------------------


def test_store_survives_restart_and_clears(store):
    assert store.load() is None
    store.save(StoredSession(token="a.b.c", username="alice"))
    assert FileSessionStore(store.path).load() == StoredSession(token="a.b.c", username="alice")

    store.clear()
    store.clear()
    assert store.load() is None


def test_corrupt_store_reads_as_empty(store):
    store.path.write_text("{not json")
    assert store.load() is None


def test_peek_expiry_reads_exp_without_secret(token):
    exp = peek_expiry(token)
    assert exp is not None
    assert (exp - BASE_TIME).total_seconds() == 30 * 60
    assert peek_expiry("garbage") is None


def test_login_persists_across_managers(store, token):
    clock = FakeClock()
    first = SessionManager(store, clock=clock)
    assert first.state is SessionState.ANONYMOUS

    first.login(token, "alice")
    assert first.state is SessionState.AUTHENTICATED

    second = SessionManager(store, clock=clock)
    assert second.is_authenticated
    assert second.username == "alice"
    assert second.token_for_request() == token


def test_stale_token_is_dropped_on_start(store, token):
    store.save(StoredSession(token=token, username="alice"))
    clock = FakeClock()
    clock.advance(minutes=30)

    session = SessionManager(store, clock=clock)
    assert session.state is SessionState.ANONYMOUS
    assert not store.path.exists()


def test_unreadable_token_counts_as_expired(store):
    session = SessionManager(store, clock=FakeClock())
    session.login("not-a-jwt", "alice")
    assert not session.check_expiry()
    assert session.state is SessionState.ANONYMOUS


def test_local_expiry_skips_the_network(store, token):
    clock = FakeClock()
    http = FakeHttp()
    client = AuthClient("http://api", SessionManager(store, clock=clock), http=http)
    client.session.login(token, "alice")

    clock.advance(minutes=31)
    with pytest.raises(NotAuthenticated):
        client.predict("hi")
    assert http.calls == []
    assert client.session.state is SessionState.ANONYMOUS


def test_logout_is_unconditional(store, token):
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=FakeHttp())
    client.session.login(token, "alice")
    client.logout()
    assert client.session.state is SessionState.ANONYMOUS
    assert store.load() is None


# -----------------------------
# Failure paths (canned HTTP)
# -----------------------------


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(500, {"detail": "boom"}),
        FakeResponse(404, {"detail": "Not Found"}),
        requests.ConnectionError("connection refused"),
        requests.Timeout("read timed out"),
    ],
)
def test_any_non_success_on_protected_call_clears_session(store, token, response):
    http = FakeHttp(response)
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=http)
    client.session.login(token, "alice")

    with pytest.raises(RequestFailed):
        client.predict("hi")
    assert client.session.state is SessionState.ANONYMOUS
    assert store.load() is None


def test_bearer_header_is_attached(store, token):
    http = FakeHttp(FakeResponse(200, {"prediction": "ih"}))
    client = AuthClient("http://api/", SessionManager(store, clock=FakeClock()), http=http, timeout=5)
    client.session.login(token, "alice")

    assert client.predict("hi") == "ih"
    method, url, kwargs = http.calls[0]
    assert (method, url) == ("POST", "http://api/api/predict")
    assert kwargs["headers"] == {"Authorization": f"Bearer {token}"}
    assert kwargs["timeout"] == 5


def test_store_outage_on_login_is_retryable(store):
    http = FakeHttp(FakeResponse(503, {"detail": "store_unavailable"}))
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=http)

    with pytest.raises(StoreUnavailable) as exc:
        client.login("alice", "secret123")
    assert exc.value.retryable
    assert client.session.state is SessionState.ANONYMOUS


def test_transport_failure_on_login_is_retryable(store):
    http = FakeHttp(requests.ConnectionError("down"))
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=http)

    with pytest.raises(RequestFailed) as exc:
        client.login("alice", "secret123")
    assert exc.value.retryable


@pytest.mark.parametrize(
    "response, error",
    [
        (FakeResponse(401, {"detail": "invalid_credentials"}), InvalidCredentials),
        (FakeResponse(503, {"detail": "store_unavailable"}), StoreUnavailable),
        (requests.ConnectionError("down"), RequestFailed),
        (FakeResponse(200, {"detail": "ok"}), RequestFailed),
    ],
)
def test_failed_login_drops_the_previous_session(store, token, response, error):
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=FakeHttp(response))
    client.session.login(token, "alice")

    with pytest.raises(error):
        client.login("alice", "wrongpass")
    assert client.session.state is SessionState.ANONYMOUS
    assert store.load() is None


def test_login_response_without_token_is_request_failed(store):
    client = AuthClient("http://api", SessionManager(store, clock=FakeClock()), http=FakeHttp(FakeResponse(200, {"detail": "ok"})))

    with pytest.raises(RequestFailed) as exc:
        client.login("alice", "secret123")
    assert exc.value.detail == "login_response_missing_token"
    assert exc.value.status_code == 200
    assert client.session.state is SessionState.ANONYMOUS


# -----------------------------
# Against the real app
# -----------------------------


@pytest.fixture()
def api(client, tmp_path):
    # Client clock is frozen at issuance so only the server notices expiry.
    session = SessionManager(FileSessionStore(tmp_path / "client-session.json"), clock=FakeClock())
    return AuthClient("http://testserver", session, http=client)


def test_full_flow_against_app(api, clock):
    api.register("alice", "secret123")
    with pytest.raises(DuplicateUser):
        api.register("alice", "whatever123")

    with pytest.raises(InvalidCredentials):
        api.login("alice", "wrongpass")
    assert api.session.state is SessionState.ANONYMOUS

    api.login("alice", "secret123")
    assert api.session.username == "alice"
    assert api.me() == "alice"
    assert api.predict("abc") == "cba"

    # Server clock passes the TTL; local pre-check still thinks the token is fine.
    clock.advance(minutes=30)
    assert api.session.check_expiry()
    with pytest.raises(SessionRejected) as exc:
        api.predict("abc")
    assert exc.value.status_code == 401
    assert api.session.state is SessionState.ANONYMOUS

    # Re-entering requires a fresh login.
    with pytest.raises(NotAuthenticated):
        api.me()
    api.login("alice", "secret123")
    assert api.me() == "alice"


def test_server_rejection_wins_over_local_check(api, cfg):
    api.register("alice", "secret123")
    api.login("alice", "secret123")

    # Locally unexpired, but signed with the wrong secret.
    forged = TokenIssuer(replace(cfg, AUTH_JWT_SECRET="someone-else-entirely-0123456789"), clock=FakeClock()).issue("alice")
    api.session.login(forged, "alice")

    with pytest.raises(SessionRejected):
        api.me()
    assert api.session.state is SessionState.ANONYMOUS
