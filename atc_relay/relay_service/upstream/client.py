"""Shared aiohttp client session for upstream requests."""

import aiohttp

from atc_relay.shared.config import Settings
from atc_relay.shared.logging import get_logger

logger = get_logger(__name__)


async def setup_upstream_session(settings: Settings) -> aiohttp.ClientSession:
    """Create the client session used for every outbound stream."""
    # total=None: live streams never finish; the header phase is bounded separately
    timeout = aiohttp.ClientTimeout(
        total=None,
        sock_connect=settings.connect_timeout,
        sock_read=settings.read_timeout,
    )
    session = aiohttp.ClientSession(
        timeout=timeout,
        headers={"User-Agent": settings.user_agent},
        auto_decompress=False,
    )
    logger.info(f"Upstream session ready for {settings.upstream_base_url}")

    return session


async def cleanup_upstream_session(session: aiohttp.ClientSession | None):
    """Close the client session and its pooled connections."""
    if session:
        await session.close()
        logger.info("Upstream session closed")
