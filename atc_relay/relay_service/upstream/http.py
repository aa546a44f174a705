"""HTTP implementation of the stream upstream."""

import asyncio
from collections.abc import AsyncIterator

import aiohttp
from aiohttp import hdrs
from yarl import URL

from atc_relay.relay_service.upstream.base import DEFAULT_CONTENT_TYPE, StreamUpstream, UpstreamStream
from atc_relay.shared.errors import UpstreamError, UpstreamStatusError, UpstreamTimeoutError
from atc_relay.shared.logging import get_logger

logger = get_logger(__name__)


class HTTPUpstreamStream(UpstreamStream):
    """Body of an aiohttp response, read with flow control."""

    def __init__(self, response: aiohttp.ClientResponse, chunk_size: int):
        self._response = response
        self._chunk_size = chunk_size
        self.status = response.status
        self.content_type = response.headers.get(hdrs.CONTENT_TYPE) or DEFAULT_CONTENT_TYPE

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        # read(n) returns whatever is buffered up to n bytes, so chunks are not held back
        async for chunk in self._response.content.iter_chunked(self._chunk_size):
            if chunk:
                yield chunk

    def close(self) -> None:
        self._response.close()


class HTTPStreamUpstream(StreamUpstream):
    """Opens streams on a fixed HTTP origin keyed by stream id."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        base_url: str,
        connect_timeout: float = 10.0,
        chunk_size: int = 64 * 1024,
    ):
        """
        Initialize HTTP upstream.

        Args:
            session: Shared client session
            base_url: Origin the stream id is appended to
            connect_timeout: Seconds allowed until response headers arrive
            chunk_size: Max bytes handed out per chunk
        """
        self._session = session
        self._base_url = URL(base_url)
        self._connect_timeout = connect_timeout
        self._chunk_size = chunk_size

    def build_url(self, stream_id: str) -> URL:
        """Append the stream id to the base URL as a single encoded path segment."""
        return self._base_url / stream_id

    async def open(self, stream_id: str) -> UpstreamStream:
        url = self.build_url(stream_id)

        logger.debug("Opening upstream stream", extra={"url": str(url)})

        try:
            response = await asyncio.wait_for(self._request(url), timeout=self._connect_timeout)
        except TimeoutError as exc:
            raise UpstreamTimeoutError(str(url), self._connect_timeout) from exc
        except aiohttp.ClientError as exc:
            raise UpstreamError(f"Upstream {url} unreachable: {exc!r}") from exc

        if not 200 <= response.status < 300:
            response.close()
            raise UpstreamStatusError(str(url), response.status)

        logger.debug("Upstream headers received", extra={"url": str(url), "status": response.status})

        return HTTPUpstreamStream(response, self._chunk_size)

    async def _request(self, url: URL) -> aiohttp.ClientResponse:
        return await self._session.get(url, allow_redirects=True)
