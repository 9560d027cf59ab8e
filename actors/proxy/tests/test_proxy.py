"""Tests for reverse proxy routing and upstream failure handling."""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi.testclient import TestClient

from actors.cli.config import StackConfig
from actors.proxy.app import (
    Upstream,
    create_proxy_app,
    is_api_path,
    resolve_upstreams,
)

BACKEND = Upstream(name="backend", base_url="http://backend.test")
FRONTEND = Upstream(name="frontend", base_url="http://frontend.test")


class _Body(httpx.AsyncByteStream):
    """Unread response body, as a real upstream connection delivers it."""

    def __init__(self, chunk: bytes) -> None:
        self._chunk = chunk

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield self._chunk


def _echo(name: str, seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            201 if request.method == "POST" else 200,
            headers=[("set-cookie", "a=1"), ("set-cookie", "b=2")],
            stream=_Body(f"{name}:{request.url.path}".encode()),
        )

    return httpx.MockTransport(handler)


def _client(seen: list[httpx.Request]) -> TestClient:
    app = create_proxy_app(
        BACKEND,
        FRONTEND,
        transports={
            "backend": _echo("backend", seen),
            "frontend": _echo("frontend", seen),
        },
    )
    return TestClient(app)


def test_api_paths_go_to_backend_with_query() -> None:
    seen: list[httpx.Request] = []

    response = _client(seen).get("/api/tasks?page=2")

    assert response.status_code == 200
    assert response.text == "backend:/api/tasks"
    assert seen[0].url.host == "backend.test"
    assert seen[0].url.query == b"page=2"


def test_encoded_path_segments_reach_upstream_unchanged() -> None:
    seen: list[httpx.Request] = []
    client = _client(seen)

    client.get("/api/files/a%2Fb")
    client.get("/api/search/100%2541?q=x%26y")

    assert seen[0].url.raw_path == b"/api/files/a%2Fb"
    assert seen[1].url.raw_path == b"/api/search/100%2541?q=x%26y"


def test_other_paths_go_to_frontend() -> None:
    seen: list[httpx.Request] = []

    client = _client(seen)

    assert client.get("/").text == "frontend:/"
    assert client.get("/apiary").text == "frontend:/apiary"
    assert client.get("/dashboard/projects").text == "frontend:/dashboard/projects"


def test_method_body_and_forwarded_headers_pass_through() -> None:
    seen: list[httpx.Request] = []

    response = _client(seen).post(
        "/api/auth/login",
        content=b'{"email":"a@b.c"}',
        headers={
            "content-type": "application/json",
            "proxy-authorization": "Basic c2VjcmV0",
        },
    )

    forwarded = seen[0]
    assert response.status_code == 201
    assert forwarded.method == "POST"
    assert forwarded.content == b'{"email":"a@b.c"}'
    assert forwarded.headers["content-type"] == "application/json"
    assert forwarded.headers["x-forwarded-host"] == "testserver"
    assert forwarded.headers["x-forwarded-proto"] == "http"
    assert forwarded.headers["x-forwarded-for"] == "testclient"
    assert "proxy-authorization" not in forwarded.headers


def test_response_headers_keep_repeated_values() -> None:
    response = _client([]).get("/api/me")

    assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]


def test_unreachable_upstream_returns_502() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    app = create_proxy_app(
        BACKEND, FRONTEND, transports={"backend": httpx.MockTransport(refuse)}
    )

    response = TestClient(app).get("/api/health")

    assert response.status_code == 502
    assert response.text == "backend unavailable"


def test_is_api_path() -> None:
    assert is_api_path("/api") is True
    assert is_api_path("/api/v1") is True
    assert is_api_path("/apis") is False


def test_resolve_upstreams_by_socket_flag() -> None:
    config = StackConfig(
        be_unix_socket="1",
        be_unix_socket_path="/run/be.sock",
        fe_unix_socket="0",
        fe_host="10.0.0.5",
        fe_port="3000",
    )

    backend, frontend = resolve_upstreams(config)

    assert backend.socket_path == "/run/be.sock"
    assert backend.base_url == "http://localhost"
    assert frontend.socket_path is None
    assert frontend.base_url == "http://10.0.0.5:3000"
