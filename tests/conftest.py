"""Shared fixtures: a scriptable upstream origin and a relay pointed at it."""

import asyncio

import pytest
from aiohttp import web

from atc_relay.relay_service.server import create_app
from atc_relay.shared.config import Settings

CHUNK_A = b"A" * 512
CHUNK_B = b"B" * 512
CHUNK_C = b"C" * 512


class UpstreamStub:
    """Fake streaming origin; the requested stream id picks the behaviour."""

    def __init__(self) -> None:
        self.hits: list[str] = []
        self.active = 0
        self.sent = 0
        self.content_type = "audio/mpeg"
        self.hang_for = 3.0
        self.app = web.Application()
        self.app.router.add_get("/{stream_id}", self.dispatch)

    async def dispatch(self, request: web.Request) -> web.StreamResponse:
        stream_id = request.match_info["stream_id"]
        self.hits.append(stream_id)
        handler = {
            "hang": self.hang,
            "drip": self.drip,
            "flood": self.flood,
            "broken": self.broken,
        }.get(stream_id, self.abc)
        if stream_id.startswith("unknown") or stream_id.startswith("status_"):
            handler = self.error_status
        return await handler(request)

    async def _start(self, request: web.Request) -> web.StreamResponse:
        response = web.StreamResponse(
            status=200,
            headers={"Content-Type": self.content_type, "X-Upstream-Only": "1"},
        )
        await response.prepare(request)
        return response

    async def abc(self, request: web.Request) -> web.StreamResponse:
        response = await self._start(request)
        for chunk in (CHUNK_A, CHUNK_B, CHUNK_C):
            await response.write(chunk)
            await asyncio.sleep(0.05)
        await response.write_eof()
        return response

    async def error_status(self, request: web.Request) -> web.Response:
        stream_id = request.match_info["stream_id"]
        status = int(stream_id.split("_")[1]) if stream_id.startswith("status_") else 404
        return web.Response(status=status, text="no such feed")

    async def hang(self, request: web.Request) -> web.Response:
        await asyncio.sleep(self.hang_for)
        return web.Response(text="too late")

    async def drip(self, request: web.Request) -> web.StreamResponse:
        self.active += 1
        try:
            response = await self._start(request)
            while True:
                await response.write(b"\xff\xfb" * 256)
                await asyncio.sleep(0.02)
        finally:
            self.active -= 1

    async def flood(self, request: web.Request) -> web.StreamResponse:
        chunk = b"\x00" * (64 * 1024)
        self.active += 1
        try:
            response = await self._start(request)
            while True:
                await response.write(chunk)
                self.sent += len(chunk)
        finally:
            self.active -= 1

    async def broken(self, request: web.Request) -> web.StreamResponse:
        response = await self._start(request)
        await response.write(CHUNK_A)
        await asyncio.sleep(0.2)
        request.transport.close()
        return response


@pytest.fixture
def upstream_stub() -> UpstreamStub:
    return UpstreamStub()


@pytest.fixture
def relay_factory(aiohttp_server, aiohttp_client, upstream_stub):
    """Start the stub origin and a relay configured against it."""

    async def factory(**overrides):
        if "upstream_base_url" not in overrides:
            upstream = await aiohttp_server(upstream_stub.app)
            overrides["upstream_base_url"] = str(upstream.make_url("/"))
        overrides.setdefault("connect_timeout", 2.0)
        settings = Settings(**overrides)
        return await aiohttp_client(create_app(settings))

    return factory


@pytest.fixture
async def relay(relay_factory):
    return await relay_factory()
