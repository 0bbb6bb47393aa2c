from __future__ import annotations

from typing import Any, Dict, NoReturn, Optional

import requests

from authcore.errors import ERRORS_BY_CODE, AuthError

from .session import SessionManager


def _debug(msg: str) -> None:
    print(f"[client] {msg}")


class SessionRejected(AuthError):
    """The server answered 401/403 to a protected call; the session is gone."""

    code = "session_rejected"

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class RequestFailed(AuthError):
    """Transport failure or an unexpected HTTP status."""

    code = "request_failed"

    def __init__(self, detail: str, *, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(detail if status_code is None else f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail
        self.retryable = retryable


def _detail(r: Any) -> str:
    try:
        data = r.json()
    except ValueError:
        return (r.text or "").strip()
    if isinstance(data, dict) and isinstance(data.get("detail"), str):
        return data["detail"]
    return str(data)


class AuthClient:
    """Talks to the authcore API on behalf of one SessionManager.

    ``http`` is anything with a requests-style ``request(method, url, ...)``
    (a ``requests.Session`` by default).
    """

    def __init__(
        self,
        base_url: str,
        session: SessionManager,
        *,
        http: Any = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.timeout = timeout
        self._http = http if http is not None else requests.Session()

    def _send(self, method: str, path: str, *, json: Any = None, headers: Optional[Dict[str, str]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            return self._http.request(method, url, json=json, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            _debug(f"{method} {path} failed: {e!r}")
            raise RequestFailed(str(e) or type(e).__name__, retryable=True) from e

    def _raise_for(self, r: Any) -> NoReturn:
        detail = _detail(r)
        cls = ERRORS_BY_CODE.get(detail)
        if cls is not None:
            raise cls(detail)
        raise RequestFailed(detail, status_code=r.status_code, retryable=r.status_code >= 500)

    # -----------------------------
    # Unauthenticated endpoints
    # -----------------------------

    def register(self, username: str, password: str) -> Dict[str, Any]:
        r = self._send("POST", "/auth/register", json={"username": username, "password": password})
        if r.status_code != 201:
            self._raise_for(r)
        return r.json()

    def login(self, username: str, password: str) -> str:
        """Log in and store the token. Raises InvalidCredentials / StoreUnavailable / RequestFailed.

        A failed attempt drops whatever session was held before it.
        """
        try:
            r = self._send("POST", "/auth/login", json={"username": username, "password": password})
        except RequestFailed:
            self.session.reject("transport_error")
            raise
        if r.status_code != 200:
            self.session.reject(f"http_{r.status_code}")
            self._raise_for(r)

        try:
            data = r.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            data = {}
        token = str(data.get("access_token") or data.get("token") or "")
        if not token:
            self.session.reject("login_response_missing_token")
            raise RequestFailed("login_response_missing_token", status_code=r.status_code)

        user = (data.get("user") or {}).get("username") or username
        self.session.login(token, str(user))
        return token

    def logout(self) -> None:
        # Nothing to revoke server-side; dropping the local copy is the logout.
        self.session.logout()

    # -----------------------------
    # Protected endpoints
    # -----------------------------

    def call(self, method: str, path: str, payload: Any = None) -> Any:
        """Call a protected endpoint with the stored token.

        Any outcome other than success (401/403, other HTTP errors, transport
        failures) clears the session before the error reaches the caller.
        """
        token = self.session.token_for_request()
        headers = {"Authorization": f"Bearer {token}"}
        try:
            r = self._send(method, path, json=payload, headers=headers)
        except RequestFailed:
            self.session.reject("transport_error")
            raise

        if r.status_code in (401, 403):
            detail = _detail(r)
            self.session.reject(f"http_{r.status_code}")
            raise SessionRejected(r.status_code, detail)
        if not 200 <= r.status_code < 300:
            self.session.reject(f"http_{r.status_code}")
            raise RequestFailed(_detail(r), status_code=r.status_code, retryable=r.status_code >= 500)

        return r.json() if r.content else None

    def me(self) -> str:
        return str(self.call("GET", "/api/me")["username"])

    def predict(self, text: str) -> str:
        return str(self.call("POST", "/api/predict", {"text": text})["prediction"])
