"""Tests for the HTTP health probe against a real local server."""

from __future__ import annotations

import asyncio
import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from canopy.runtime.environment import HealthProbe


def _app() -> web.Application:
    async def ok(request: web.Request) -> web.Response:
        return web.Response(text="ok")

    async def no_content(request: web.Request) -> web.Response:
        return web.Response(status=204)

    async def broken(request: web.Request) -> web.Response:
        return web.Response(status=500)

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(2)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/health", ok)
    app.router.add_get("/empty", no_content)
    app.router.add_get("/broken", broken)
    app.router.add_get("/slow", slow)
    return app


def _closed_port() -> int:
    with socket.socket() as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class TestHealthProbe:
    @pytest.mark.asyncio
    async def test_2xx_is_healthy(self) -> None:
        async with TestServer(_app()) as server:
            result = await HealthProbe(timeout_ms=1000).probe(str(server.make_url("/health")))
        assert result.healthy
        assert result.message == "HTTP 200"
        assert result.status_code == 200

    @pytest.mark.asyncio
    async def test_204_is_healthy(self) -> None:
        async with TestServer(_app()) as server:
            result = await HealthProbe().probe(str(server.make_url("/empty")))
        assert result.healthy
        assert result.message == "HTTP 204"

    @pytest.mark.asyncio
    async def test_500_is_unhealthy(self) -> None:
        async with TestServer(_app()) as server:
            result = await HealthProbe().probe(str(server.make_url("/broken")))
        assert not result.healthy
        assert result.message == "HTTP 500 Internal Server Error"
        assert result.status_code == 500

    @pytest.mark.asyncio
    async def test_404_is_unhealthy(self) -> None:
        async with TestServer(_app()) as server:
            result = await HealthProbe().probe(str(server.make_url("/missing")))
        assert not result.healthy
        assert result.message == "HTTP 404 Not Found"

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        async with TestServer(_app()) as server:
            result = await HealthProbe(timeout_ms=100).probe(str(server.make_url("/slow")))
        assert not result.healthy
        assert result.message == "Timeout"
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_connection_refused(self) -> None:
        port = _closed_port()
        result = await HealthProbe().probe(f"http://127.0.0.1:{port}/health")
        assert not result.healthy
        assert result.message
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_invalid_url(self) -> None:
        result = await HealthProbe().probe("not a url")
        assert not result.healthy
        assert result.message
