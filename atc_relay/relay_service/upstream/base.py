"""Abstract base classes for the upstream streaming origin."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class UpstreamStream(ABC):
    """An upstream response whose headers arrived and whose body is still flowing."""

    status: int
    content_type: str

    @abstractmethod
    def iter_chunks(self) -> AsyncIterator[bytes]:
        """
        Iterate over body chunks in arrival order.

        Raises:
            aiohttp.ClientError: If the upstream connection breaks mid-body
            TimeoutError: If upstream stalls longer than the read timeout
        """

    @abstractmethod
    def close(self) -> None:
        """Release the upstream connection. Safe to call more than once."""


class StreamUpstream(ABC):
    """Abstract interface for opening upstream audio streams."""

    @abstractmethod
    async def open(self, stream_id: str) -> UpstreamStream:
        """
        Open the stream and wait for its response headers.

        Args:
            stream_id: Validated stream identifier

        Returns:
            Stream with a success status, ready to be drained

        Raises:
            UpstreamTimeoutError: If headers do not arrive in time
            UpstreamStatusError: If upstream answers with a non-2xx status
            UpstreamError: For connection and DNS failures
        """
