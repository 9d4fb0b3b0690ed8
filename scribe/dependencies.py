from dataclasses import dataclass

from fastapi import Request

from scribe.audio import AudioChunker
from scribe.clients import GroqClient
from scribe.config import Settings
from scribe.services.cleanup import CleanupService
from scribe.services.state import SessionStateMachine
from scribe.services.storage import FileStorage
from scribe.services.summary import SummaryService, TextGenerator
from scribe.services.transcription import SpeechToText, TranscriptionService
from scribe.store import SessionStore


@dataclass
class Services:
    """Everything the route handlers need, built once per app."""

    settings: Settings
    store: SessionStore
    storage: FileStorage
    state: SessionStateMachine
    cleanup: CleanupService
    transcription: TranscriptionService
    summary: SummaryService


def build_speech_to_text(settings: Settings, groq: GroqClient | None) -> SpeechToText:
    if settings.transcription_backend == "local":
        # faster-whisper pulls in ctranslate2; only import it when selected
        from scribe.clients.whisper_client import WhisperClient

        return WhisperClient(
            settings.whisper_model,
            device=settings.whisper_device,
            compute_type=settings.whisper_compute_type,
        )
    if settings.transcription_backend == "groq":
        return groq or GroqClient(
            model=settings.default_model,
            api_key=settings.groq_api_key,
            transcription_model=settings.transcription_model,
        )
    raise ValueError(f"Unknown transcription backend: {settings.transcription_backend!r}")


def build_services(
    settings: Settings,
    *,
    speech_to_text: SpeechToText | None = None,
    text_generator: TextGenerator | None = None,
) -> Services:
    """Wire the pipeline together. Tests pass fakes for the two external services."""
    store = SessionStore(settings.database_path)
    storage = FileStorage(settings.upload_dir)
    state = SessionStateMachine(store)
    cleanup = CleanupService(store, storage)

    groq = None
    if text_generator is None or (
        speech_to_text is None and settings.transcription_backend == "groq"
    ):
        groq = GroqClient(
            model=settings.default_model,
            api_key=settings.groq_api_key,
            transcription_model=settings.transcription_model,
        )
    speech_to_text = speech_to_text or build_speech_to_text(settings, groq)
    text_generator = text_generator or groq

    chunker = AudioChunker(
        settings.max_chunk_bytes,
        ffmpeg_bin=settings.ffmpeg_bin,
        ffprobe_bin=settings.ffprobe_bin,
    )
    transcription = TranscriptionService(
        store,
        state,
        chunker,
        speech_to_text,
        storage,
        cleanup,
        offset_mode=settings.offset_mode,
        delete_audio_after=settings.delete_audio_after_transcription,
    )
    summary = SummaryService(
        store, state, text_generator, max_tokens=settings.summary_max_tokens
    )
    return Services(
        settings=settings,
        store=store,
        storage=storage,
        state=state,
        cleanup=cleanup,
        transcription=transcription,
        summary=summary,
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
