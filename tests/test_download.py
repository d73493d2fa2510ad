"""Tests for bounded media materialization."""

import asyncio

import httpx
import pytest

from mediarelay.core.download import materialize
from mediarelay.core.errors import RelayError
from mediarelay.core.http_client import HTTPClient
from mediarelay.models.enums import ErrorKind

MEDIA_URL = "https://cobalt.example/tunnel?id=1"


async def _chunks(count, size):
    for _ in range(count):
        yield b"x" * size


class MediaServer:
    """Answers HEAD with ``head_length`` and GET with ``body`` (bytes or chunk factory)."""

    def __init__(self, *, head_length=None, body=b"", get_status=200, get_headers=None):
        self.head_length = head_length
        self.body = body
        self.get_status = get_status
        self.get_headers = get_headers or {}
        self.methods: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.methods.append(request.method)
        if request.method == "HEAD":
            if self.head_length is None:
                return httpx.Response(405)
            return httpx.Response(200, headers={"Content-Length": str(self.head_length)})
        body = self.body() if callable(self.body) else self.body
        return httpx.Response(self.get_status, headers=self.get_headers, content=body)


def _materialize(server, **kwargs):
    async def run():
        async with HTTPClient(transport=httpx.MockTransport(server)) as http:
            return await materialize(MEDIA_URL, http=http, **kwargs)

    return asyncio.run(run())


def _failure(server, **kwargs) -> RelayError:
    with pytest.raises(RelayError) as exc_info:
        _materialize(server, **kwargs)
    return exc_info.value


class TestMaterialize:
    def test_small_download(self):
        server = MediaServer(head_length=11, body=b"hello world")
        assert _materialize(server, max_bytes=1024) == b"hello world"
        assert server.methods == ["HEAD", "GET"]

    def test_probe_above_cap_refuses_before_download(self):
        server = MediaServer(head_length=50 * 1024 * 1024)
        err = _failure(server, max_bytes=40 * 1024 * 1024)
        assert err.kind == ErrorKind.PAYLOAD_TOO_LARGE
        assert server.methods == ["HEAD"]

    def test_cap_enforced_without_size_probe(self):
        server = MediaServer(body=lambda: _chunks(30, 10))
        err = _failure(server, max_bytes=100)
        assert err.kind == ErrorKind.DOWNLOAD_FAILED
        assert server.methods == ["HEAD", "GET"]

    def test_http_error_status(self):
        server = MediaServer(get_status=404)
        err = _failure(server, max_bytes=100)
        assert err.kind == ErrorKind.DOWNLOAD_FAILED
        assert err.status_code == 404

    def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("stalled", request=request)

        with pytest.raises(RelayError) as exc_info:
            _materialize(handler, max_bytes=100)
        assert exc_info.value.kind == ErrorKind.DOWNLOAD_FAILED

    def test_progress_reported_in_ten_percent_steps(self):
        calls = []
        server = MediaServer(
            head_length=100,
            body=lambda: _chunks(20, 5),
            get_headers={"Content-Length": "100"},
        )
        data = _materialize(server, max_bytes=1000, on_progress=lambda *a: calls.append(a))

        assert len(data) == 100
        assert [c[0] for c in calls] == [10, 20, 30, 40, 50, 60, 70, 80, 90, 100]
        assert calls[-1] == (100, 100, 100)

    def test_failing_progress_callback_is_ignored(self):
        def callback(percent, loaded, total):
            raise RuntimeError("ui gone")

        server = MediaServer(
            head_length=100,
            body=lambda: _chunks(10, 10),
            get_headers={"Content-Length": "100"},
        )
        assert len(_materialize(server, max_bytes=1000, on_progress=callback)) == 100
