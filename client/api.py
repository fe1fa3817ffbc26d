"""
HTTP client for the EcoManager API.

Every protected request carries the stored access token. A 401 triggers one
refresh through POST /auth/refresh and one retry of the original request; if
the refresh fails the stored tokens are cleared and SessionExpired is raised,
which callers treat as "go back to the login screen".
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import httpx

from client.tokens import MemoryTokenStore

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000"
# generous: serverless cold starts are slow
DEFAULT_TIMEOUT = 30.0


class ApiError(Exception):
    def __init__(self, status: int, code: str, message: str):
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{status} {code}: {message}")


class SessionExpired(ApiError):
    def __init__(self):
        super().__init__(401, "SESSION_EXPIRED", "Your session has expired, please log in again")


def normalize_base_url(url: str) -> str:
    """Strip a trailing slash and make sure the URL ends in /api."""
    url = url.rstrip("/")
    return url if url.endswith("/api") else f"{url}/api"


def unwrap(response: httpx.Response) -> dict:
    """JSON body of a 2xx response, ApiError for anything else."""
    try:
        body = response.json() if response.content else {}
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        # gateways may answer with a bare string or list
        body = {}
    if response.is_success:
        return body
    raise ApiError(
        response.status_code,
        body.get("error", "HTTP_ERROR"),
        body.get("message", response.reason_phrase),
    )


class RefreshingAuth(httpx.Auth):
    """
    Attaches the bearer token and handles the refresh-and-retry-once cycle.
    Refreshes are serialized; a request that hit 401 with a token that has
    since been replaced retries with the new token instead of refreshing again.
    """

    requires_request_body = True

    def __init__(
        self,
        store,
        refresh: Callable[[str], dict],
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.refresh = refresh
        self.on_session_expired = on_session_expired
        self._lock = threading.Lock()

    @staticmethod
    def _apply(request: httpx.Request, token: Optional[str]) -> None:
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        else:
            request.headers.pop("Authorization", None)

    def auth_flow(self, request: httpx.Request):
        sent_token = self.store.access_token
        self._apply(request, sent_token)
        response = yield request
        if response.status_code != 401:
            return

        self._apply(request, self._token_after_401(sent_token))
        # one retry only; a second 401 goes back to the caller
        yield request

    def _token_after_401(self, sent_token: Optional[str]) -> str:
        with self._lock:
            current = self.store.access_token
            if current and current != sent_token:
                return current
            refresh_token = self.store.refresh_token
            if not refresh_token:
                self._expire("no refresh token stored")
            try:
                tokens = self.refresh(refresh_token)
                access_token = tokens["access_token"]
            except (httpx.HTTPError, ApiError, KeyError, TypeError) as exc:
                self._expire(exc)
            self.store.set(access_token, tokens.get("refresh_token"))
            logger.debug("Access token refreshed")
            return access_token

    def _expire(self, reason) -> None:
        logger.info("Session expired: %s", reason)
        self.store.clear()
        if self.on_session_expired is not None:
            self.on_session_expired()
        raise SessionExpired()


class EcoManagerClient:
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        store=None,
        transport: Optional[httpx.BaseTransport] = None,
        timeout: float = DEFAULT_TIMEOUT,
        on_session_expired: Optional[Callable[[], None]] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        self.store = store if store is not None else MemoryTokenStore()
        options = {
            "base_url": self.base_url,
            "timeout": httpx.Timeout(timeout),
            "headers": {"Content-Type": "application/json"},
        }
        if transport is not None:
            options["transport"] = transport
        # unauthenticated calls: register / login / refresh never trigger a refresh
        self._public = httpx.Client(**options)
        self.auth = RefreshingAuth(self.store, self._refresh_tokens, on_session_expired)
        self._http = httpx.Client(auth=self.auth, **options)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        self._http.close()
        self._public.close()

    def _refresh_tokens(self, refresh_token: str) -> dict:
        response = self._public.post("/auth/refresh", json={"refresh_token": refresh_token})
        return unwrap(response)["data"]

    def register(self, email: str, password: str, name: str, **fields) -> dict:
        body = {"email": email, "password": password, "name": name, **fields}
        return unwrap(self._public.post("/auth/register", json=body))["data"]

    def login(self, email: str, password: str) -> dict:
        data = unwrap(self._public.post("/auth/login", json={"email": email, "password": password}))["data"]
        self.store.set(data["access_token"], data["refresh_token"])
        return data

    def refresh(self) -> dict:
        """Explicit rotation; the interceptor does this on its own after a 401."""
        if not self.store.refresh_token:
            raise SessionExpired()
        data = self._refresh_tokens(self.store.refresh_token)
        self.store.set(data["access_token"], data["refresh_token"])
        return data

    def logout(self) -> None:
        if not self.store.authenticated:
            self.store.clear()
            return
        try:
            self.post("/auth/logout")
        except SessionExpired:
            pass  # nothing left to revoke
        finally:
            self.store.clear()

    def me(self) -> dict:
        return self.get("/auth/me")["data"]

    def request(self, method: str, path: str, **kwargs) -> dict:
        return unwrap(self._http.request(method, path, **kwargs))

    def get(self, path: str, **kwargs) -> dict:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs) -> dict:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs) -> dict:
        return self.request("PUT", path, **kwargs)

    def patch(self, path: str, **kwargs) -> dict:
        return self.request("PATCH", path, **kwargs)

    def delete(self, path: str, **kwargs) -> dict:
        return self.request("DELETE", path, **kwargs)
