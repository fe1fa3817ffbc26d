import httpx
import pytest

from client import ApiError, EcoManagerClient, FileTokenStore, MemoryTokenStore, SessionExpired
from client.api import normalize_base_url, unwrap
from conftest import PASSWORD, create_token


class RecordingTransport(httpx.BaseTransport):
    """Passes requests through and remembers (path, Authorization) pairs."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    def handle_request(self, request):
        self.calls.append((request.url.path, request.headers.get("Authorization")))
        return self.inner.handle_request(request)

    def paths(self):
        return [path for path, _ in self.calls]


@pytest.fixture
def transport(app):
    return RecordingTransport(httpx.WSGITransport(app=app))


@pytest.fixture
def expired_calls():
    return []


@pytest.fixture
def api(transport, expired_calls):
    client = EcoManagerClient(
        "http://testserver",
        transport=transport,
        on_session_expired=lambda: expired_calls.append(True),
    )
    yield client
    client.close()


def logged_in(api):
    api.register("alice@example.com", PASSWORD, "Alice")
    return api.login("alice@example.com", PASSWORD)


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://localhost:5000", "http://localhost:5000/api"),
        ("http://localhost:5000/", "http://localhost:5000/api"),
        ("https://eco.example.com/api", "https://eco.example.com/api"),
        ("https://eco.example.com/api/", "https://eco.example.com/api"),
    ],
)
def test_normalize_base_url(url, expected):
    assert normalize_base_url(url) == expected


def test_unwrap_error_without_json_object():
    with pytest.raises(ApiError) as exc:
        unwrap(httpx.Response(502, json="Bad gateway"))
    assert exc.value.status == 502
    assert exc.value.code == "HTTP_ERROR"
    assert exc.value.message == "Bad Gateway"


class TestAgainstApp:
    def test_login_stores_tokens_and_attaches_them(self, api, transport):
        data = logged_in(api)
        assert api.store.access_token == data["access_token"]
        assert api.store.refresh_token == data["refresh_token"]

        assert api.me()["email"] == "alice@example.com"
        assert transport.calls[-1] == ("/api/auth/me", f"Bearer {data['access_token']}")

    def test_bad_login_does_not_refresh(self, api, transport):
        api.register("alice@example.com", PASSWORD, "Alice")
        with pytest.raises(ApiError) as exc:
            api.login("alice@example.com", "Wrong123!")
        assert exc.value.status == 401
        assert exc.value.code == "INVALID_CREDENTIALS"
        assert "/api/auth/refresh" not in transport.paths()
        assert api.store.access_token is None

    def test_expired_access_token_is_refreshed_once_and_retried(self, api, transport):
        data = logged_in(api)
        old_refresh = api.store.refresh_token
        api.store.set(access_token=create_token(data["user"]["id"], expired=True))
        transport.calls.clear()

        assert api.me()["id"] == data["user"]["id"]
        assert transport.paths() == ["/api/auth/me", "/api/auth/refresh", "/api/auth/me"]
        assert api.store.refresh_token != old_refresh
        assert transport.calls[-1][1] == f"Bearer {api.store.access_token}"

        # the next request goes straight through with the new token
        transport.calls.clear()
        api.me()
        assert transport.paths() == ["/api/auth/me"]

    def test_failed_refresh_clears_tokens(self, api, transport, expired_calls):
        data = logged_in(api)
        api.store.set(
            access_token=create_token(data["user"]["id"], expired=True),
            refresh_token="not-a-refresh-token",
        )
        transport.calls.clear()

        with pytest.raises(SessionExpired):
            api.me()
        assert transport.paths() == ["/api/auth/me", "/api/auth/refresh"]
        assert api.store.access_token is None
        assert api.store.refresh_token is None
        assert expired_calls == [True]

    def test_explicit_refresh_rotates(self, api):
        logged_in(api)
        first = api.store.refresh_token
        api.refresh()
        assert api.store.refresh_token != first

    def test_logout_clears_tokens_and_revokes(self, api, transport):
        logged_in(api)
        refresh_token = api.store.refresh_token
        api.logout()
        assert api.store.access_token is None
        assert api.store.refresh_token is None

        resp = httpx.Client(transport=transport, base_url="http://testserver/api").post(
            "/auth/refresh", json={"refresh_token": refresh_token}
        )
        assert resp.status_code == 401

    def test_logout_without_session(self, api, transport, expired_calls):
        api.logout()
        assert not api.store.authenticated
        assert transport.calls == []
        assert expired_calls == []

    def test_error_responses_raise_api_error(self, api):
        logged_in(api)
        with pytest.raises(ApiError) as exc:
            api.get("/users")
        assert exc.value.status == 403
        assert exc.value.code == "FORBIDDEN"


def mock_api(handler, store, **kwargs):
    return EcoManagerClient("http://testserver", store=store, transport=httpx.MockTransport(handler), **kwargs)


def ok_refresh():
    return httpx.Response(200, json={"data": {"access_token": "new-access", "refresh_token": "new-refresh"}})


class TestInterceptorEdgeCases:
    def test_second_401_is_not_retried_again(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            if request.url.path == "/api/auth/refresh":
                return ok_refresh()
            return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "nope"})

        store = MemoryTokenStore("old-access", "old-refresh")
        with mock_api(handler, store) as api:
            with pytest.raises(ApiError) as exc:
                api.me()
        assert not isinstance(exc.value, SessionExpired)
        assert exc.value.status == 401
        assert calls == ["/api/auth/me", "/api/auth/refresh", "/api/auth/me"]
        assert store.access_token == "new-access"

    def test_network_error_during_refresh(self):
        expired = []

        def handler(request):
            if request.url.path == "/api/auth/refresh":
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "expired"})

        store = MemoryTokenStore("old-access", "old-refresh")
        with mock_api(handler, store, on_session_expired=lambda: expired.append(1)) as api:
            with pytest.raises(SessionExpired):
                api.get("/users/profile")
        assert store.access_token is None and store.refresh_token is None
        assert expired == [1]

    @pytest.mark.parametrize("body", ["Bad gateway", ["upstream", "down"]])
    def test_refresh_error_with_non_object_body(self, body):
        expired = []

        def handler(request):
            if request.url.path == "/api/auth/refresh":
                return httpx.Response(502, json=body)
            return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "expired"})

        store = MemoryTokenStore("old-access", "old-refresh")
        with mock_api(handler, store, on_session_expired=lambda: expired.append(1)) as api:
            with pytest.raises(SessionExpired):
                api.me()
        assert store.access_token is None and store.refresh_token is None
        assert expired == [1]

    def test_no_refresh_token_stored(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "expired"})

        store = MemoryTokenStore("old-access", None)
        with mock_api(handler, store) as api:
            with pytest.raises(SessionExpired):
                api.me()
        assert calls == ["/api/auth/me"]
        assert store.access_token is None

    def test_token_rotated_by_another_request_is_reused(self):
        calls = []
        store = MemoryTokenStore("old-access", "old-refresh")

        def handler(request):
            calls.append((request.url.path, request.headers.get("Authorization")))
            if request.headers.get("Authorization") == "Bearer old-access":
                # a concurrent request refreshed while this one was in flight
                store.set("fresh-access", "fresh-refresh")
                return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "expired"})
            return httpx.Response(200, json={"data": {"id": "u1"}})

        with mock_api(handler, store) as api:
            assert api.me() == {"id": "u1"}
        assert calls == [
            ("/api/auth/me", "Bearer old-access"),
            ("/api/auth/me", "Bearer fresh-access"),
        ]

    def test_request_body_is_resent_on_retry(self):
        bodies = []
        store = MemoryTokenStore("old-access", "old-refresh")

        def handler(request):
            if request.url.path == "/api/auth/refresh":
                return ok_refresh()
            bodies.append(request.content)
            if request.headers["Authorization"] == "Bearer old-access":
                return httpx.Response(401, json={"error": "UNAUTHENTICATED", "message": "expired"})
            return httpx.Response(200, json={"message": "ok"})

        with mock_api(handler, store) as api:
            api.put("/users/profile", json={"name": "Alice"})
        assert len(bodies) == 2
        assert bodies[0] == bodies[1] != b""


class TestTokenStores:
    def test_memory_store(self):
        store = MemoryTokenStore()
        assert not store.authenticated
        store.set("a", "r")
        store.set(access_token="a2")
        assert (store.access_token, store.refresh_token) == ("a2", "r")
        store.clear()
        assert not store.authenticated

    def test_file_store_persists(self, tmp_path):
        path = tmp_path / "tokens.json"
        FileTokenStore(path).set("a", "r")
        reloaded = FileTokenStore(path)
        assert (reloaded.access_token, reloaded.refresh_token) == ("a", "r")

        reloaded.clear()
        assert not path.exists()
        assert not FileTokenStore(path).authenticated

    def test_file_store_ignores_corrupt_file(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text("{not json")
        assert not FileTokenStore(path).authenticated
