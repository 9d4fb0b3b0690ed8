import asyncio
import logging
import os

from scribe.audio.audio_utils import (
    AudioChunk,
    chunk_count,
    chunk_path,
    compute_chunk_boundaries,
)
from scribe.errors import ChunkingError

logger = logging.getLogger(__name__)


class AudioChunker:
    """Split recordings that exceed the speech-to-text request limit.

    Probing and encoding shell out to ``ffprobe`` / ``ffmpeg`` through
    asyncio subprocesses, so the event loop is never blocked. All chunk
    encodes run concurrently; each writes its own file.
    """

    def __init__(
        self,
        max_chunk_bytes: int,
        *,
        ffmpeg_bin: str = "ffmpeg",
        ffprobe_bin: str = "ffprobe",
    ) -> None:
        self.max_chunk_bytes = max_chunk_bytes
        self.ffmpeg_bin = ffmpeg_bin
        self.ffprobe_bin = ffprobe_bin

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def split(self, source_path: str) -> list[AudioChunk]:
        """Return the ordered chunks covering *source_path*.

        A file within budget comes back as a single chunk pointing at the
        source itself. Otherwise the source is left untouched and N sibling
        chunk files are written next to it. If any step fails the whole call
        raises ChunkingError: the remaining encodes are cancelled and the chunk
        files already on disk are listed in its ``chunk_paths``.
        """
        total_bytes = os.path.getsize(source_path)
        if total_bytes <= self.max_chunk_bytes:
            logger.info(
                "%s is %d bytes, within the %d byte budget; no split needed",
                source_path,
                total_bytes,
                self.max_chunk_bytes,
            )
            return [AudioChunk(index=0, path=source_path)]

        total_duration = await self.probe_duration(source_path)
        num_chunks = chunk_count(total_bytes, self.max_chunk_bytes)
        boundaries = compute_chunk_boundaries(total_duration, num_chunks)
        logger.info(
            "Splitting %s into %d chunks of ~%.2fs each",
            source_path,
            num_chunks,
            total_duration / num_chunks,
        )

        chunks = [
            AudioChunk(index=i, path=chunk_path(source_path, i), start=start, duration=duration)
            for i, (start, duration) in enumerate(boundaries)
        ]
        tasks = [
            asyncio.create_task(self._encode_chunk(source_path, c)) for c in chunks
        ]
        try:
            await asyncio.gather(*tasks)
        except ChunkingError as e:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            e.chunk_paths = [c.path for c in chunks if os.path.exists(c.path)]
            raise
        return chunks

    async def probe_duration(self, path: str) -> float:
        """Total duration of *path* in seconds, via ffprobe."""
        output = await self._run(
            self.ffprobe_bin,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        )
        try:
            duration = float(output.strip())
        except ValueError:
            raise ChunkingError(f"Could not read duration of {path}: {output.strip()!r}")
        if duration <= 0:
            raise ChunkingError(f"Could not read duration of {path}: {duration}")
        return duration

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _encode_chunk(self, source_path: str, chunk: AudioChunk) -> None:
        await self._run(
            self.ffmpeg_bin,
            "-y",
            "-v", "error",
            "-ss", f"{chunk.start:.3f}",
            "-t", f"{chunk.duration:.3f}",
            "-i", source_path,
            chunk.path,
        )
        logger.info("Created chunk %d: %s", chunk.index, chunk.path)

    async def _run(self, *args: str) -> str:
        """Run a subprocess and return its stdout; raise ChunkingError on failure."""
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ChunkingError(f"Could not start {args[0]}: {e}") from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"exit code {proc.returncode}"
            logger.error("%s failed: %s", args[0], message)
            raise ChunkingError(f"{os.path.basename(args[0])} failed: {message}")
        return stdout.decode(errors="replace")
