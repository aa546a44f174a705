"""Tests for app wiring: status route, CORS, request ids and shutdown."""

import asyncio
import os
import signal
import sys

import aiohttp
import pytest
from aiohttp.test_utils import unused_port

from atc_relay.relay_service.keys import SETTINGS_KEY
from atc_relay.relay_service.server import RelayServer, create_app
from atc_relay.shared.config import Settings


async def test_status_reports_upstream(relay_factory):
    relay = await relay_factory(upstream_base_url="http://streams.example/")

    resp = await relay.get("/status")

    assert resp.status == 200
    assert await resp.json() == {
        "status": "ok",
        "service": "atc-relay",
        "upstream_base_url": "http://streams.example/",
    }


async def test_cors_allows_any_origin(relay):
    resp = await relay.get("/proxy/kjfk9_s", headers={"Origin": "http://player.example"})

    assert resp.status == 200
    assert resp.headers["Access-Control-Allow-Origin"] in ("*", "http://player.example")
    assert "Access-Control-Allow-Credentials" not in resp.headers
    await resp.read()


async def test_cors_on_error_responses(relay):
    resp = await relay.get("/proxy/unknown_id", headers={"Origin": "http://player.example"})

    assert resp.status == 500
    assert resp.headers["Access-Control-Allow-Origin"] in ("*", "http://player.example")


async def test_cors_preflight(relay):
    resp = await relay.options(
        "/proxy/kjfk9_s",
        headers={
            "Origin": "http://player.example",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert resp.status == 200
    assert resp.headers["Access-Control-Allow-Origin"] in ("*", "http://player.example")


async def test_request_id_is_echoed(relay):
    resp = await relay.get("/status", headers={"X-Request-ID": "req-123"})

    assert resp.headers["X-Request-ID"] == "req-123"


async def test_request_id_is_generated(relay):
    resp = await relay.get("/status")

    assert len(resp.headers["X-Request-ID"]) == 36


def test_create_app_keeps_settings():
    settings = Settings(port=8123)

    app = create_app(settings)

    assert app[SETTINGS_KEY] is settings
    paths = {route.resource.canonical for route in app.router.routes()}
    assert {"/proxy/{stream_id}", "/status"} <= paths


def test_server_defaults_to_environment_settings(monkeypatch):
    from atc_relay.shared.config import get_settings

    monkeypatch.setenv("PORT", "4100")
    get_settings.cache_clear()
    try:
        assert RelayServer().settings.port == 4100
    finally:
        get_settings.cache_clear()


async def start_relay(upstream_base_url: str) -> tuple[RelayServer, asyncio.Task, str]:
    """Run RelayServer.start() on a free port and wait until it answers."""
    settings = Settings(
        host="127.0.0.1",
        port=unused_port(),
        upstream_base_url=upstream_base_url,
        shutdown_timeout=0.5,
    )
    server = RelayServer(settings)
    task = asyncio.create_task(server.start())
    base_url = f"http://127.0.0.1:{settings.port}"

    async with aiohttp.ClientSession() as http:
        for _ in range(200):
            try:
                async with http.get(f"{base_url}/status") as resp:
                    if resp.status == 200:
                        return server, task, base_url
            except aiohttp.ClientConnectionError:
                pass
            await asyncio.sleep(0.02)

    task.cancel()
    raise AssertionError("relay did not start")


@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers are POSIX only")
@pytest.mark.parametrize("trigger", ["stop", "sigterm"])
async def test_shutdown_cancels_inflight_relays(aiohttp_server, upstream_stub, trigger):
    upstream = await aiohttp_server(upstream_stub.app)
    server, task, base_url = await start_relay(str(upstream.make_url("/")))
    shutdown_timeout = server.settings.shutdown_timeout
    loop = asyncio.get_running_loop()

    async with aiohttp.ClientSession() as http:
        resp = await http.get(f"{base_url}/proxy/drip")
        assert resp.status == 200
        assert await resp.content.readany()
        assert upstream_stub.active == 1

        started = loop.time()
        if trigger == "stop":
            server.stop()
        else:
            os.kill(os.getpid(), signal.SIGTERM)

        await asyncio.wait_for(task, timeout=shutdown_timeout + 3)
        assert loop.time() - started < shutdown_timeout + 3
        resp.close()

    async def upstream_released():
        while upstream_stub.active:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(upstream_released(), timeout=3)
    assert upstream_stub.hits == ["drip"]
