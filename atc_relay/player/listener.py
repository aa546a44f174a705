"""
ATC Relay listener
Plays a feed through the relay the way the browser player does and writes the
audio bytes to a file or stdout.
"""

import argparse
import asyncio
import sys
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import BinaryIO

import aiohttp
from yarl import URL

from atc_relay.player.session import PlayerSession
from atc_relay.player.stations import find_station, station_ids
from atc_relay.shared.errors import RelayStatusError
from atc_relay.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


class RelayListener:
    """Consumes relay streams, failing over through a rotation of stream ids."""

    def __init__(
        self,
        relay_url: str,
        stream_ids: Sequence[str],
        current: str | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        retry_delay: float = 1.0,
        restart_delay: float = 2.0,
    ):
        self.relay_url = URL(relay_url)
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.retry_delay = retry_delay
        self.restart_delay = restart_delay
        self.session = PlayerSession(stream_ids, current)
        self._http: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "RelayListener":
        timeout = aiohttp.ClientTimeout(total=None, sock_read=self.read_timeout)
        self._http = await self.session.enter(aiohttp.ClientSession(timeout=timeout))
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.session.aclose()
        self._http = None

    def stream_url(self, stream_id: str) -> URL:
        return self.relay_url / "proxy" / stream_id

    async def chunks(self) -> AsyncIterator[bytes]:
        """
        Yield audio bytes indefinitely.

        A failed or timed-out connection switches to the next untried stream
        after ``retry_delay``; a stream that ends cleanly is reopened after
        ``restart_delay``. Stop by breaking out of the iteration.
        """
        if self._http is None:
            raise RuntimeError("RelayListener must be used as an async context manager")

        while True:
            stream_id = self.session.connect()
            logger.info(f"Connecting to {stream_id} via {self.relay_url}")

            try:
                async with aclosing(self._play(stream_id)) as stream:
                    async for chunk in stream:
                        yield chunk
            except (aiohttp.ClientError, TimeoutError, RelayStatusError) as exc:
                self.session.fail(str(exc) or type(exc).__name__)
                await asyncio.sleep(self.retry_delay)
            else:
                self.session.ended()
                logger.info(f"Stream {stream_id} ended, restarting")
                await asyncio.sleep(self.restart_delay)

    async def _play(self, stream_id: str) -> AsyncIterator[bytes]:
        try:
            response = await asyncio.wait_for(self._request(stream_id), timeout=self.connect_timeout)
        except TimeoutError as exc:
            raise TimeoutError("Connection timeout") from exc

        try:
            if response.status != 200:
                raise RelayStatusError(stream_id, response.status)

            self.session.connected()
            logger.info(f"Playing {stream_id} ({response.headers.get('Content-Type', 'unknown type')})")

            async for chunk in response.content.iter_any():
                yield chunk
        finally:
            response.close()

    async def _request(self, stream_id: str) -> aiohttp.ClientResponse:
        return await self._http.get(self.stream_url(stream_id))


async def listen(
    relay_url: str,
    output: BinaryIO,
    station: str | None = None,
    connect_timeout: float = 10.0,
) -> None:
    """Write the selected feed, with failover, to ``output`` until cancelled."""
    async with RelayListener(relay_url, station_ids(), current=station, connect_timeout=connect_timeout) as listener:
        async for chunk in listener.chunks():
            output.write(chunk)
            output.flush()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Listen to an ATC feed through the relay")
    parser.add_argument("--relay", default="http://localhost:3000", help="Relay base URL")
    parser.add_argument("--station", help="Stream id or IATA code to start with")
    parser.add_argument("--output", default="-", help="File to write audio to ('-' for stdout)")
    parser.add_argument("--connect-timeout", type=float, default=10.0, help="Seconds before switching station")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    # stdout may carry the audio itself
    setup_logging(args.log_level, stream=sys.stderr)

    station = None
    if args.station:
        found = find_station(args.station)
        if found is None:
            parser.error(f"Unknown station {args.station!r}")
        station = found.id
        logger.info(f"Starting with {found.name} ({found.iata})")

    try:
        if args.output == "-":
            asyncio.run(listen(args.relay, sys.stdout.buffer, station, args.connect_timeout))
        else:
            with open(args.output, "wb") as output:
                asyncio.run(listen(args.relay, output, station, args.connect_timeout))
    except KeyboardInterrupt:
        logger.info("Listener stopped by user")


if __name__ == "__main__":
    main()
