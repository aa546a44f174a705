"""Player session: connection state machine and owned resources."""

from collections.abc import Awaitable, Callable, Sequence
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from enum import StrEnum
from typing import Self, TypeVar

from atc_relay.player.failover import is_exhausted, next_stream_id
from atc_relay.shared.errors import InvalidTransitionError
from atc_relay.shared.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class PlayerState(StrEnum):
    """Where the player is in its connect/play cycle."""

    IDLE = "idle"
    CONNECTING = "connecting"
    PLAYING = "playing"
    FAILED = "failed"


class PlayerSession:
    """
    Tracks which stream is playing, which ones were attempted, and every
    resource that must be released when playback stops.

    Use as an async context manager so ``aclose`` runs on every exit path.
    """

    def __init__(self, stream_ids: Sequence[str], current: str | None = None) -> None:
        if not stream_ids:
            raise ValueError("PlayerSession needs at least one stream id")
        if current is not None and current not in stream_ids:
            raise ValueError(f"Unknown stream id {current!r}")

        self._stream_ids = list(stream_ids)
        self._current = current or self._stream_ids[0]
        self._attempted: set[str] = set()
        self._state = PlayerState.IDLE
        self._last_error: str | None = None
        self._resources = AsyncExitStack()

    @property
    def state(self) -> PlayerState:
        return self._state

    @property
    def current(self) -> str:
        return self._current

    @property
    def attempted(self) -> frozenset[str]:
        return frozenset(self._attempted)

    @property
    def last_error(self) -> str | None:
        return self._last_error

    @property
    def stream_ids(self) -> list[str]:
        return list(self._stream_ids)

    def _move(self, action: str, allowed: tuple[PlayerState, ...], new: PlayerState) -> None:
        if self._state not in allowed:
            raise InvalidTransitionError(self._state, action)
        logger.debug(f"Player {self._current}: {self._state} -> {new} ({action})")
        self._state = new

    def connect(self) -> str:
        """Start connecting to the current stream and return its id."""
        self._move("connect", (PlayerState.IDLE, PlayerState.FAILED), PlayerState.CONNECTING)
        self._last_error = None
        return self._current

    def connected(self) -> None:
        """The stream delivered its headers; audio is flowing."""
        self._move("mark connected", (PlayerState.CONNECTING,), PlayerState.PLAYING)

    def fail(self, reason: str) -> str:
        """
        Record a failure on the current stream and advance to the next one.

        When every stream in the rotation has been attempted the attempted set
        is cleared and the rotation starts over.

        Returns:
            Stream id to try next
        """
        self._move("fail", (PlayerState.CONNECTING, PlayerState.PLAYING), PlayerState.FAILED)
        self._last_error = reason

        failed = self._current
        self._attempted.add(failed)
        if is_exhausted(self._attempted, self._stream_ids):
            logger.info("All streams attempted, cycling through the rotation again")
            self._attempted.clear()

        self._current = next_stream_id(self._attempted, self._stream_ids, failed)
        logger.warning(f"Stream {failed} failed ({reason}); switching to {self._current}")
        return self._current

    def ended(self) -> None:
        """The stream finished cleanly; the same stream will be retried."""
        self._move("end", (PlayerState.PLAYING,), PlayerState.IDLE)

    def select(self, stream_id: str) -> None:
        """Switch to a chosen stream and forget previous attempts."""
        if stream_id not in self._stream_ids:
            raise ValueError(f"Unknown stream id {stream_id!r}")
        self._state = PlayerState.IDLE
        self._current = stream_id
        self._attempted.clear()
        self._last_error = None

    def stop(self) -> None:
        """Return to idle without touching the rotation or attempted set."""
        self._state = PlayerState.IDLE

    async def enter(self, context: AbstractAsyncContextManager[T]) -> T:
        """Enter an async context manager whose exit runs on teardown."""
        return await self._resources.enter_async_context(context)

    def on_teardown(self, callback: Callable[[], Awaitable[object]]) -> None:
        """Register a coroutine function to await on teardown."""
        self._resources.push_async_callback(callback)

    async def aclose(self) -> None:
        """Release every registered resource, newest first."""
        self.stop()
        await self._resources.aclose()
        self._resources = AsyncExitStack()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
