"""Choice of the next stream to try after a failure."""

from collections.abc import Sequence, Set


def is_exhausted(attempted: Set[str], stream_ids: Sequence[str]) -> bool:
    """True when every id in the rotation has been attempted."""
    return all(stream_id in attempted for stream_id in stream_ids)


def next_stream_id(attempted: Set[str], stream_ids: Sequence[str], current: str | None = None) -> str:
    """
    Pick the next stream id to try.

    Walks the rotation starting right after ``current`` (or from the top when
    ``current`` is None or not in the rotation) and returns the first id not in
    ``attempted``. Once the whole rotation was attempted, the id right after
    ``current`` is returned so playback keeps cycling.

    Args:
        attempted: Ids already tried in this session
        stream_ids: Rotation order
        current: Id that just failed

    Returns:
        Next stream id

    Raises:
        ValueError: If the rotation is empty
    """
    if not stream_ids:
        raise ValueError("Rotation has no stream ids")

    count = len(stream_ids)
    start = stream_ids.index(current) + 1 if current in stream_ids else 0

    for offset in range(count):
        candidate = stream_ids[(start + offset) % count]
        if candidate not in attempted:
            return candidate

    return stream_ids[start % count]
