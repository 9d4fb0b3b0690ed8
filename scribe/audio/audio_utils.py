import math
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class AudioChunk:
    """One slice of a recording, as produced by the chunker.

    ``start`` and ``duration`` are the nominal values the slice was cut with,
    in seconds. ``duration`` is None when the recording was not split (the
    chunk is the source file itself and was never probed).
    """

    index: int
    path: str
    start: float = 0.0
    duration: float | None = None


def chunk_count(total_bytes: int, max_chunk_bytes: int) -> int:
    """Number of chunks needed so each one nominally fits *max_chunk_bytes*."""
    if max_chunk_bytes <= 0:
        raise ValueError("max_chunk_bytes must be positive")
    return max(1, math.ceil(total_bytes / max_chunk_bytes))


def compute_chunk_boundaries(
    total_duration: float, num_chunks: int
) -> list[tuple[float, float]]:
    """Return ``(start, duration)`` pairs splitting *total_duration* evenly.

    Pure function. The split is by time, so a chunk of a variable-bitrate
    file can still come out larger than the byte budget.
    """
    chunk_duration = total_duration / num_chunks
    return [(i * chunk_duration, chunk_duration) for i in range(num_chunks)]


def chunk_path(source_path: str, index: int) -> str:
    """Sibling path for chunk *index*: ``dir/stem_chunk<index>.ext``."""
    directory = os.path.dirname(source_path)
    stem, ext = os.path.splitext(os.path.basename(source_path))
    return os.path.join(directory, f"{stem}_chunk{index}{ext}")
