import logging
import os
from dataclasses import dataclass
from typing import Protocol

from scribe.audio import AudioChunk, AudioChunker
from scribe.errors import (
    AudioFileNotFoundError,
    ChunkingError,
    EmptyChunkError,
    InvalidTransitionError,
    NoAudioError,
    NotFoundError,
    ProcessingError,
    ScribeError,
)
from scribe.models import (
    ErrorStep,
    Session,
    SessionStatus,
    TranscriptSegment,
    Upload,
    UploadStatus,
)
from scribe.services.cleanup import CleanupService
from scribe.services.state import SessionStateMachine
from scribe.services.storage import FileStorage
from scribe.store import SessionStore

logger = logging.getLogger(__name__)

OFFSET_MODES = ("chunk", "segments")


class SpeechToText(Protocol):
    """A speech-to-text backend: hosted Whisper on Groq or local faster-whisper."""

    async def transcribe_segments(
        self, audio: bytes, filename: str
    ) -> list[TranscriptSegment]: ...

    async def transcribe_text(self, audio: bytes, filename: str) -> str: ...


# ---------------------------------------------------------------------------
# Offset helpers (pure)
# ---------------------------------------------------------------------------


def offset_segments(
    segments: list[TranscriptSegment], offset: float
) -> list[TranscriptSegment]:
    """Return *segments* shifted forward by *offset* seconds."""
    if not offset:
        return list(segments)
    return [seg.shifted(offset) for seg in segments]


def chunk_span(chunk: AudioChunk, segments: list[TranscriptSegment], mode: str) -> float:
    """How far the running offset advances after *chunk*.

    ``chunk`` mode uses the chunk's nominal duration, so leading or trailing
    silence that Whisper drops does not pull later timestamps backwards.
    ``segments`` mode sums the spoken segment durations instead. Either mode
    falls back to the segment sum when the chunk duration is unknown.
    """
    if mode == "chunk" and chunk.duration is not None:
        return chunk.duration
    return sum(seg.duration for seg in segments)


@dataclass
class TranscriptionResult:
    session_id: int
    segments: list[TranscriptSegment]
    chunk_count: int


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TranscriptionService:
    """Chunk a session's recording, transcribe it and persist the transcript.

    Chunks go to the speech-to-text backend one at a time, in order: each
    chunk's timestamps depend on the chunks before it.
    """

    def __init__(
        self,
        store: SessionStore,
        state: SessionStateMachine,
        chunker: AudioChunker,
        speech_to_text: SpeechToText,
        storage: FileStorage,
        cleanup: CleanupService,
        *,
        offset_mode: str = "chunk",
        delete_audio_after: bool = False,
    ) -> None:
        if offset_mode not in OFFSET_MODES:
            raise ValueError(f"offset_mode must be one of {OFFSET_MODES}, got {offset_mode!r}")
        self.store = store
        self.state = state
        self.chunker = chunker
        self.speech_to_text = speech_to_text
        self.storage = storage
        self.cleanup = cleanup
        self.offset_mode = offset_mode
        self.delete_audio_after = delete_audio_after

    # ------------------------------------------------------------------
    # Audio resolution
    # ------------------------------------------------------------------

    def resolve_audio_path(
        self, session: Session, upload: Upload | None, audio_path: str | None = None
    ) -> str:
        """Pick the recording to transcribe.

        Precedence: explicit *audio_path*, then the linked upload, then the
        session's legacy ``audio_file_path``.
        """
        path = audio_path or (upload.path if upload else None) or session.audio_file_path
        if not path:
            raise NoAudioError(
                f"No audio file for session {session.id}", step=ErrorStep.transcription
            )
        if not self.storage.exists(path):
            raise AudioFileNotFoundError(
                f"Audio file not found: {path}", step=ErrorStep.transcription
            )
        return path

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def transcribe_session(
        self,
        session_id: int,
        audio_path: str | None = None,
        *,
        preserve_segments: bool = True,
    ) -> TranscriptionResult:
        """Run the whole transcription step for one session.

        A session that cannot move to ``transcribing``, or that another
        caller claimed first, is refused with InvalidTransitionError and left
        as it was. Once claimed, any failure moves the session to ``error``
        with step ``transcription`` and is re-raised as a ScribeError; chunk
        files are then left on disk and recorded on the linked upload.
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        session = await self.state.claim(session, SessionStatus.transcribing)

        upload = None
        if session.upload_id is not None:
            upload = await self.store.get_upload(session.upload_id)

        derived: list[str] = []
        # Only an upload this run moved to ``transcribing`` is rolled back on failure.
        claimed = None
        try:
            source = self.resolve_audio_path(session, upload, audio_path)
            logger.info("Starting transcription for session %s: %s", session_id, source)

            if upload is not None and source == upload.path:
                await self.store.update_upload_status(upload.id, UploadStatus.transcribing)
                claimed = upload

            try:
                chunks = await self.chunker.split(source)
            except ChunkingError as e:
                derived = e.chunk_paths
                raise
            derived = [c.path for c in chunks if c.path != source]
            logger.info("Session %s audio split into %d chunk(s)", session_id, len(chunks))

            if preserve_segments:
                segments = await self.transcribe_chunks(chunks)
                duration = self._total_duration(chunks, segments, session, upload)
            else:
                text = await self.transcribe_chunks_text(chunks)
                duration = self._total_duration(chunks, [], session, upload)
                if duration is None:
                    duration = await self._probe_quietly(source)
                segments = [TranscriptSegment(start=0.0, end=duration or 0.0, text=text)]

            count = await self.store.replace_transcriptions(session_id, segments)
            logger.info("Saved %d transcription segment(s) for session %s", count, session_id)
            self.cleanup.delete_files(derived)

            if session.duration is None and duration is not None:
                await self.store.update_session(session_id, duration=duration)

            await self.state.update_status(session_id, SessionStatus.transcribed)
        except InvalidTransitionError:
            # Someone else moved the session; its status is theirs to keep.
            await self._release_upload(claimed, derived)
            raise
        except ScribeError as e:
            e.step = ErrorStep.transcription
            await self._record_failure(session_id, claimed, derived, e.message)
            raise
        except Exception as e:
            await self._record_failure(session_id, claimed, derived, str(e))
            raise ProcessingError(str(e), step=ErrorStep.transcription) from e

        if claimed is not None:
            await self.store.update_upload_status(
                claimed.id, UploadStatus.transcribed, derived
            )
            if self.delete_audio_after:
                await self._cleanup_quietly(claimed.id)

        logger.info("Transcription completed for session %s", session_id)
        return TranscriptionResult(
            session_id=session_id, segments=segments, chunk_count=len(chunks)
        )

    async def transcribe_chunks(self, chunks: list[AudioChunk]) -> list[TranscriptSegment]:
        """Transcribe *chunks* in order into one continuous segment list.

        A fold over the chunks: ``elapsed`` carries the offset applied to the
        next chunk's segments.
        """
        transcript: list[TranscriptSegment] = []
        elapsed = 0.0
        for chunk in chunks:
            raw = await self._transcribe_chunk(chunk, len(chunks))
            shifted = offset_segments(raw, elapsed)
            transcript = transcript + shifted
            elapsed += chunk_span(chunk, raw, self.offset_mode)
        return transcript

    async def transcribe_chunks_text(self, chunks: list[AudioChunk]) -> str:
        """Plain-text variant: chunk texts joined by single spaces."""
        texts: list[str] = []
        for chunk in chunks:
            audio = await self.storage.read_bytes(chunk.path)
            logger.info("Transcribing chunk %d/%d (text)", chunk.index + 1, len(chunks))
            text = await self.speech_to_text.transcribe_text(
                audio, os.path.basename(chunk.path)
            )
            if not text or not text.strip():
                raise EmptyChunkError(
                    f"No transcription received for chunk {chunk.index + 1}"
                )
            texts.append(text.strip())
        return " ".join(texts)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _transcribe_chunk(
        self, chunk: AudioChunk, total: int
    ) -> list[TranscriptSegment]:
        audio = await self.storage.read_bytes(chunk.path)
        logger.info(
            "Transcribing chunk %d/%d: %s", chunk.index + 1, total, chunk.path
        )
        segments = await self.speech_to_text.transcribe_segments(
            audio, os.path.basename(chunk.path)
        )
        if not segments or not any(seg.text for seg in segments):
            raise EmptyChunkError(
                f"No transcription segments received for chunk {chunk.index + 1}"
            )
        logger.info("Chunk %d transcribed, %d segments", chunk.index + 1, len(segments))
        return segments

    @staticmethod
    def _total_duration(
        chunks: list[AudioChunk],
        segments: list[TranscriptSegment],
        session: Session,
        upload: Upload | None,
    ) -> float | None:
        if all(c.duration is not None for c in chunks):
            return sum(c.duration for c in chunks)
        if upload is not None and upload.duration is not None:
            return upload.duration
        if segments:
            return segments[-1].end
        return session.duration

    async def _probe_quietly(self, path: str) -> float | None:
        try:
            return await self.chunker.probe_duration(path)
        except ChunkingError as e:
            logger.warning("Could not read duration of %s: %s", path, e)
            return None

    async def _record_failure(
        self, session_id: int, upload: Upload | None, derived: list[str], message: str
    ) -> None:
        await self.state.set_error(session_id, ErrorStep.transcription, message)
        await self._release_upload(upload, derived)

    async def _release_upload(self, upload: Upload | None, derived: list[str]) -> None:
        if upload is not None:
            # Chunk paths are kept so a later cleanup can still find the files.
            await self.store.update_upload_status(
                upload.id, UploadStatus.uploaded, derived or None
            )

    async def _cleanup_quietly(self, upload_id: int) -> None:
        try:
            await self.cleanup.cleanup_upload(upload_id)
        except Exception as e:
            logger.error("Post-transcription cleanup of upload %s failed: %s", upload_id, e)
