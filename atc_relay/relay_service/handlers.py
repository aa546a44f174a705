"""HTTP request handlers for the stream relay."""

import asyncio
import re
from uuid import uuid4

import aiohttp
from aiohttp import hdrs, web

from atc_relay.relay_service.keys import REQUEST_ID_HEADER, UPSTREAM_KEY
from atc_relay.relay_service.upstream.base import StreamUpstream, UpstreamStream
from atc_relay.shared.config import Settings
from atc_relay.shared.errors import InvalidStreamIdError, UpstreamError
from atc_relay.shared.logging import get_logger
from atc_relay.shared.models import RelayRequest, RelayState, ServerStatusResponse

logger = get_logger(__name__)

UPSTREAM_ERROR_MESSAGE = "An error occurred while fetching the stream"


class RequestHandlers:
    """Handlers for the relay and status routes."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._stream_id_re = re.compile(settings.stream_id_pattern)
        self._allowed_stream_ids = frozenset(settings.allowed_stream_ids)

    def validate_stream_id(self, stream_id: str) -> str:
        """
        Check a raw path segment before it is used in an outbound URL.

        Raises:
            InvalidStreamIdError: If the id is empty, fails the allow-list
                pattern, or is missing from the configured registry
        """
        if not stream_id:
            raise InvalidStreamIdError(stream_id, "empty")
        if not self._stream_id_re.fullmatch(stream_id):
            raise InvalidStreamIdError(stream_id, "does not match the allowed pattern")
        if self._allowed_stream_ids and stream_id not in self._allowed_stream_ids:
            raise InvalidStreamIdError(stream_id, "not a registered stream")
        return stream_id

    def _get_upstream(self, request: web.Request) -> StreamUpstream:
        """Get the upstream from the application state."""
        upstream = request.app.get(UPSTREAM_KEY)
        if upstream is None:
            raise RuntimeError("Upstream is not initialized")
        return upstream

    async def handle_proxy(self, request: web.Request) -> web.StreamResponse:
        """Relay an upstream audio stream to the client as it arrives."""
        request_id = request.get("request_id") or str(uuid4())

        try:
            relay_request = RelayRequest(
                request_id=request_id,
                stream_id=self.validate_stream_id(request.match_info.get("stream_id", "")),
            )
        except InvalidStreamIdError as exc:
            logger.warning(f"Request {request_id} rejected: {exc}")
            return web.Response(text=f"Invalid stream id: {exc.reason}", status=400)

        logger.info(f"Incoming request {request_id} for stream {relay_request.stream_id}")

        try:
            stream = await self._get_upstream(request).open(relay_request.stream_id)
        except UpstreamError as exc:
            self._log_transition(relay_request, RelayState.PENDING, RelayState.FAILED)
            logger.error(f"Request {request_id} failed before streaming: {exc}")
            return web.Response(text=UPSTREAM_ERROR_MESSAGE, status=500)

        return await self._relay(request, relay_request, stream)

    async def _relay(
        self,
        request: web.Request,
        relay_request: RelayRequest,
        stream: UpstreamStream,
    ) -> web.StreamResponse:
        """Copy the upstream body to the client, one awaited write per chunk."""
        request_id = relay_request.request_id
        state = RelayState.PENDING
        forwarded = 0

        response = web.StreamResponse(
            status=200,
            headers={
                hdrs.CONTENT_TYPE: stream.content_type,
                hdrs.CACHE_CONTROL: "no-cache, no-store",
                REQUEST_ID_HEADER: request_id,
            },
        )

        try:
            await response.prepare(request)
            state = self._log_transition(relay_request, state, RelayState.STREAMING)

            async for chunk in stream.iter_chunks():
                await response.write(chunk)
                forwarded += len(chunk)

            await response.write_eof()
            state = self._log_transition(relay_request, state, RelayState.COMPLETED)

        except ConnectionResetError:
            state = self._log_transition(relay_request, state, RelayState.FAILED)
            logger.info(f"Request {request_id}: client disconnected after {forwarded} bytes")
            self._abort(request)

        except (aiohttp.ClientError, TimeoutError) as exc:
            state = self._log_transition(relay_request, state, RelayState.FAILED)
            logger.warning(f"Request {request_id}: upstream broke after {forwarded} bytes: {exc!r}")
            self._abort(request)

        except asyncio.CancelledError:
            state = self._log_transition(relay_request, state, RelayState.FAILED)
            logger.info(f"Request {request_id}: cancelled after {forwarded} bytes")
            raise

        except Exception as exc:
            # Headers are committed, closing the connection is the only signal left
            state = self._log_transition(relay_request, state, RelayState.FAILED)
            logger.exception(f"Request {request_id} failed mid-stream due to unexpected error: {exc}")
            self._abort(request)

        finally:
            stream.close()
            logger.info(f"Request {request_id} for stream {relay_request.stream_id} {state}, {forwarded} bytes")

        return response

    def _abort(self, request: web.Request) -> None:
        """Drop the client connection so a truncated stream is not mistaken for a complete one."""
        transport = request.transport
        if transport is not None:
            transport.close()

    def _log_transition(self, relay_request: RelayRequest, old: RelayState, new: RelayState) -> RelayState:
        logger.debug(f"Request {relay_request.request_id}: {old} -> {new}")
        return new

    async def handle_status(self, request: web.Request) -> web.Response:
        """Return relay liveness and the configured origin."""
        response = ServerStatusResponse(upstream_base_url=self.settings.upstream_base_url)

        return web.json_response(response.model_dump(mode="json"))
