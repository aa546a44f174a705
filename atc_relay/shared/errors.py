"""Exceptions raised across the relay and player."""


class RelayError(Exception):
    """Base class for relay failures."""


class InvalidStreamIdError(RelayError):
    """Stream identifier rejected before any upstream call."""

    def __init__(self, stream_id: str, reason: str):
        super().__init__(f"Invalid stream id {stream_id!r}: {reason}")
        self.stream_id = stream_id
        self.reason = reason


class UpstreamError(RelayError):
    """Upstream could not deliver a stream."""


class UpstreamStatusError(UpstreamError):
    """Upstream answered with a non-success status."""

    def __init__(self, url: str, status: int):
        super().__init__(f"Upstream {url} returned HTTP {status}")
        self.url = url
        self.status = status


class UpstreamTimeoutError(UpstreamError):
    """Upstream did not send response headers in time."""

    def __init__(self, url: str, timeout: float):
        super().__init__(f"Upstream {url} did not respond within {timeout}s")
        self.url = url
        self.timeout = timeout


class InvalidTransitionError(Exception):
    """Player session asked to move between incompatible states."""

    def __init__(self, current: str, action: str):
        super().__init__(f"Cannot {action} while {current}")
        self.current = current
        self.action = action


class RelayStatusError(RelayError):
    """The relay refused or failed a stream request."""

    def __init__(self, stream_id: str, status: int):
        super().__init__(f"Relay returned HTTP {status} for stream {stream_id}")
        self.stream_id = stream_id
        self.status = status
