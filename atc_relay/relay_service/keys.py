"""Typed application keys shared by the server and its handlers."""

from aiohttp import web

from atc_relay.relay_service.upstream.base import StreamUpstream
from atc_relay.shared.config import Settings

SETTINGS_KEY = web.AppKey("settings", Settings)
UPSTREAM_KEY = web.AppKey("upstream", StreamUpstream)

REQUEST_ID_HEADER = "X-Request-ID"
