"""Split a sync window into bounded, contiguous sub-windows."""

from walletsync.services.types import TimeWindow


def split(window: TimeWindow, chunk_size_ms: int) -> list[TimeWindow]:
    """
    Divide a window into chunks of at most ``chunk_size_ms``.

    Each chunk starts one millisecond after the previous chunk's end, the
    same ``+1`` convention the paginated fetcher uses to advance its cursor,
    so no timestamp is requested twice or skipped. The final chunk is
    clamped to ``window.end``.

    Args:
        window: The full range to synchronize.
        chunk_size_ms: Maximum span of a single chunk.

    Returns:
        Ordered list of chunks covering the window exactly.
    """
    if chunk_size_ms <= 0:
        raise ValueError(f"chunk_size_ms must be positive, got {chunk_size_ms}")

    chunks = [TimeWindow(window.start, min(window.start + chunk_size_ms, window.end))]
    while chunks[-1].end < window.end:
        start = chunks[-1].end + 1
        chunks.append(TimeWindow(start, min(start + chunk_size_ms, window.end)))
    return chunks


class Chunker:
    """Splits windows with a fixed chunk size."""

    def __init__(self, chunk_size_ms: int):
        if chunk_size_ms <= 0:
            raise ValueError(f"chunk_size_ms must be positive, got {chunk_size_ms}")
        self.chunk_size_ms = chunk_size_ms

    def split(self, window: TimeWindow) -> list[TimeWindow]:
        return split(window, self.chunk_size_ms)
