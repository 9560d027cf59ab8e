"""Reverse proxy in front of the backend and frontend servers.

``/api`` and everything below it goes to the backend; every other path goes
to the frontend. Either upstream may listen on TCP or on a Unix socket.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from actors.cli.config import StackConfig
from packages.taskosaur_shared.logging import get_logger

_LOGGER = get_logger(__name__)

API_PREFIX = "/api"
UNIX_SOCKET_BASE_URL = "http://localhost"
PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)


@dataclass(frozen=True)
class Upstream:
    """Where one upstream server listens."""

    name: str
    base_url: str
    socket_path: str | None = None


def resolve_upstreams(config: StackConfig) -> tuple[Upstream, Upstream]:
    """Return the backend and frontend upstreams for one stack config."""
    return (
        _upstream(
            "backend",
            config.be_unix_socket,
            config.be_unix_socket_path,
            config.be_host,
            config.be_port,
        ),
        _upstream(
            "frontend",
            config.fe_unix_socket,
            config.fe_unix_socket_path,
            config.fe_host,
            config.fe_port,
        ),
    )


def _upstream(
    name: str, unix_socket: str, socket_path: str, host: str, port: str
) -> Upstream:
    if unix_socket == "1":
        return Upstream(
            name=name, base_url=UNIX_SOCKET_BASE_URL, socket_path=socket_path
        )
    return Upstream(name=name, base_url=f"http://{host}:{port}")


def is_api_path(path: str) -> bool:
    """Return True for paths served by the backend."""
    return path == API_PREFIX or path.startswith(f"{API_PREFIX}/")


def upstream_target(request: Request) -> str:
    """Return the path and query exactly as the client sent them."""
    path = request.scope.get("raw_path") or request.url.path.encode()
    query = request.scope.get("query_string", b"")
    target = path.decode("latin-1")
    if query:
        target += "?" + query.decode("latin-1")
    return target


def _client_for(
    upstream: Upstream, transport: httpx.AsyncBaseTransport | None
) -> httpx.AsyncClient:
    if transport is None and upstream.socket_path is not None:
        transport = httpx.AsyncHTTPTransport(uds=upstream.socket_path)
    return httpx.AsyncClient(
        base_url=upstream.base_url,
        transport=transport,
        timeout=None,
        follow_redirects=False,
    )


def forwarded_headers(request: Request) -> list[tuple[str, str]]:
    """Return upstream request headers with ``X-Forwarded-*`` set.

    Hop-by-hop headers and ``Host`` are dropped; an incoming
    ``X-Forwarded-For`` chain is extended with the client address.
    """
    client_host = request.client.host if request.client else ""
    prior = request.headers.get("x-forwarded-for")
    headers = [
        (key, value)
        for key, value in request.headers.items()
        if key not in HOP_BY_HOP_HEADERS
        and key != "host"
        and not key.startswith("x-forwarded-")
    ]
    headers.append(
        ("x-forwarded-for", f"{prior}, {client_host}" if prior else client_host)
    )
    headers.append(("x-forwarded-host", request.headers.get("host", "")))
    headers.append(("x-forwarded-proto", request.url.scheme))
    return headers


def _response_headers(headers: httpx.Headers) -> list[tuple[str, str]]:
    return [
        (key, value)
        for key, value in headers.multi_items()
        if key.lower() not in HOP_BY_HOP_HEADERS
    ]


def create_proxy_app(
    backend: Upstream,
    frontend: Upstream,
    *,
    transports: Mapping[str, httpx.AsyncBaseTransport] | None = None,
) -> FastAPI:
    """Create the proxy app; ``transports`` overrides upstream I/O by name."""
    overrides = dict(transports or {})
    clients = {
        upstream.name: _client_for(upstream, overrides.get(upstream.name))
        for upstream in (backend, frontend)
    }

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        _LOGGER.info(
            "proxy started",
            extra={
                "backend": backend.socket_path or backend.base_url,
                "frontend": frontend.socket_path or frontend.base_url,
            },
        )
        yield
        for client in clients.values():
            await client.aclose()
        _LOGGER.info("proxy stopped")

    app = FastAPI(
        title="Taskosaur Proxy",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.api_route("/{path:path}", methods=PROXY_METHODS)
    async def proxy(request: Request) -> Response:
        target = backend if is_api_path(request.url.path) else frontend
        client = clients[target.name]
        upstream_request = client.build_request(
            request.method,
            upstream_target(request),
            headers=forwarded_headers(request),
            content=await request.body(),
        )
        try:
            upstream_response = await client.send(upstream_request, stream=True)
        except httpx.RequestError as exc:
            _LOGGER.warning(
                "upstream request failed",
                extra={
                    "upstream": target.name,
                    "path": request.url.path,
                    "error": str(exc),
                },
            )
            return PlainTextResponse(f"{target.name} unavailable", status_code=502)

        response = StreamingResponse(
            upstream_response.aiter_raw(),
            status_code=upstream_response.status_code,
            background=BackgroundTask(upstream_response.aclose),
        )
        for key, value in _response_headers(upstream_response.headers):
            response.headers.append(key, value)
        return response

    return app
