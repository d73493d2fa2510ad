"""Tests for the HTTP wrapper around the resolver."""

import pytest
from fastapi.testclient import TestClient

from mediarelay.core.credentials import CredentialPool
from mediarelay.core.errors import RelayError
from mediarelay.core.monitor import FailureMonitor, FailureReport
from mediarelay.core.ratelimit import RateLimiter
from mediarelay.core.stats import StatsCache
from mediarelay.main import app
from mediarelay.models.enums import ErrorKind, MediaType
from mediarelay.models.response import MediaItem, MediaResult
from mediarelay.routes.api import (
    get_monitor,
    get_rate_limiter,
    get_resolver,
    get_stats,
    status_for,
)

RESULT = MediaResult(
    items=[MediaItem(type=MediaType.IMAGE, url="https://scontent.cdninstagram.com/a.jpg")],
    author_handle="nasa",
    caption="Earth",
    source_label="instagram_graphql",
)


class FakeResolver:
    def __init__(self, outcome=RESULT):
        self.outcome = outcome
        self.inputs: list[str] = []
        self.credentials = CredentialPool(["sessionid=a"])
        self.cobalt = ["one", "two"]
        self.http = None

    async def resolve(self, text):
        self.inputs.append(text)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.fixture()
def state():
    resolver = FakeResolver()
    stats = StatsCache()
    limiter = RateLimiter(limit=100, window=60)
    monitor = FailureMonitor()
    app.dependency_overrides = {
        get_resolver: lambda: resolver,
        get_stats: lambda: stats,
        get_rate_limiter: lambda: limiter,
        get_monitor: lambda: monitor,
    }
    yield {"resolver": resolver, "stats": stats, "limiter": limiter, "monitor": monitor}
    app.dependency_overrides = {}


@pytest.fixture()
def client(state):
    return TestClient(app)


class TestResolveEndpoint:
    def test_success(self, client, state):
        response = client.post("/api/resolve", json={"input": " https://www.instagram.com/p/ABC/ "})
        assert response.status_code == 200
        body = response.json()
        assert body["items"][0]["type"] == "image"
        assert body["author_handle"] == "nasa"
        assert state["stats"].summary() == {"users": 1, "total_downloads": 1}

    def test_empty_input_rejected(self, client):
        assert client.post("/api/resolve", json={"input": ""}).status_code == 422

    @pytest.mark.parametrize(
        "kind,status",
        [
            (ErrorKind.UNRECOGNIZED_INPUT, 400),
            (ErrorKind.MISSING_USERNAME, 400),
            (ErrorKind.CREDENTIALS_MISSING, 503),
            (ErrorKind.NO_ACTIVE_STORIES, 404),
            (ErrorKind.UNAUTHORIZED, 401),
            (ErrorKind.MALFORMED_UPSTREAM_RESPONSE, 502),
        ],
    )
    def test_error_mapping(self, client, state, kind, status):
        state["resolver"].outcome = RelayError("nope", kind)
        response = client.post("/api/resolve", json={"input": "/story nasa"})
        assert response.status_code == status
        assert response.json()["detail"] == {
            "success": False,
            "error": "nope",
            "error_code": kind.value,
        }
        assert state["stats"].summary()["total_downloads"] == 0

    def test_all_methods_failed_maps_by_root_cause(self, client, state):
        inner = RelayError("no such user", ErrorKind.USER_NOT_FOUND)
        state["resolver"].outcome = RelayError(
            "All 2 methods failed", ErrorKind.ALL_METHODS_FAILED, last_error=inner
        )
        response = client.post("/api/resolve", json={"input": "/profile ghost"})
        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "all_methods_failed"

    def test_unexpected_error_is_500(self, client, state):
        state["resolver"].outcome = RuntimeError("secret detail")
        response = client.post("/api/resolve", json={"input": "/story nasa"})
        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["error_code"] == "internal_error"
        assert "secret detail" not in detail["error"]

    def test_rate_limited(self, client, state):
        limiter = RateLimiter(limit=2, window=60)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter
        codes = [client.post("/api/resolve", json={"input": "@nasa"}).status_code for _ in range(3)]
        assert codes == [200, 200, 429]
        assert state["resolver"].inputs == ["@nasa", "@nasa"]

    def test_rate_limit_identity_from_forwarded_header(self, client):
        limiter = RateLimiter(limit=1, window=60)
        app.dependency_overrides[get_rate_limiter] = lambda: limiter
        first = client.post("/api/resolve", json={"input": "@nasa"}, headers={"X-Forwarded-For": "1.1.1.1"})
        second = client.post("/api/resolve", json={"input": "@nasa"}, headers={"X-Forwarded-For": "2.2.2.2"})
        assert (first.status_code, second.status_code) == (200, 200)


class TestDeliverEndpoint:
    def test_plan_for_direct_items(self, client, state):
        response = client.post("/api/deliver", json={"input": "https://www.instagram.com/p/ABC/"})
        assert response.status_code == 200
        body = response.json()
        assert body["caption"] == "👤 <b>Author</b>: @nasa\n📝 <b>Caption</b>: Earth"
        [[entry]] = body["groups"]
        assert entry["item"]["url"] == "https://scontent.cdninstagram.com/a.jpg"
        assert entry["download_url"] is None
        assert state["stats"].summary()["total_downloads"] == 1

    def test_transient_items_point_at_download_route(self, client, state):
        tunnel = MediaItem(
            type=MediaType.VIDEO,
            url="https://cobalt.example/tunnel?id=1",
            is_transient=True,
            filename="clip.mp4",
        )
        state["resolver"].outcome = MediaResult(
            items=[tunnel] * 11, source_label="cobalt:cobalt.example"
        )
        body = client.post("/api/deliver", json={"input": "https://vm.tiktok.com/ZM/"}).json()
        assert [len(g) for g in body["groups"]] == [10, 1]
        download_url = body["groups"][1][0]["download_url"]
        assert download_url.startswith("http://testserver/api/download?")
        assert "tunnel%3Fid%3D1" in download_url

    def test_errors_map_like_resolve(self, client, state):
        state["resolver"].outcome = RelayError("no stories", ErrorKind.NO_ACTIVE_STORIES)
        response = client.post("/api/deliver", json={"input": "/story nasa"})
        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "no_active_stories"


class TestOtherEndpoints:
    def test_download_rejects_unknown_hosts(self, client):
        response = client.get("/api/download", params={"url": "http://169.254.169.254/latest"})
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "host_not_allowed"

    def test_download_rejects_non_http(self, client):
        response = client.get("/api/download", params={"url": "file:///etc/passwd"})
        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "invalid_url"

    def test_health(self, client):
        assert client.get("/api/health").json() == {
            "status": "healthy",
            "cookies": 1,
            "cobalt_instances": 2,
        }

    def test_stats_include_failures(self, client, state):
        state["monitor"](FailureReport("UpstreamFailure", "boom", 3))
        body = client.get("/api/stats").json()
        assert body == {"users": 0, "total_downloads": 0, "failures": {"UpstreamFailure": 1}}

    def test_root(self, client):
        assert client.get("/").json()["endpoints"]["resolve"] == "/api/resolve"


class TestStatusMapping:
    def test_payload_too_large(self):
        assert status_for(RelayError("big", ErrorKind.PAYLOAD_TOO_LARGE)) == 413

    def test_upstream_failure(self):
        assert status_for(RelayError("x", ErrorKind.UPSTREAM_FAILURE)) == 502
