from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Groq
    groq_api_key: str = "gsk_placeholder"
    default_model: str = "llama-3.3-70b-versatile"
    summary_max_tokens: int = 2000

    # Transcription
    transcription_backend: str = "groq"  # groq | local
    transcription_model: str = "whisper-large-v3"
    whisper_model: str = "small"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"
    offset_mode: str = "chunk"  # chunk | segments

    # Chunking
    max_chunk_mb: int = 24
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    # Storage
    database_path: str = "scribe.db"
    upload_dir: str = "uploads"
    max_upload_bytes: int = 100_000_000
    allowed_mime_types: list[str] = [
        "audio/mpeg",
        "audio/mp3",
        "audio/wav",
        "audio/ogg",
        "audio/m4a",
        "audio/aac",
        "audio/flac",
        "audio/webm",
    ]
    delete_audio_after_transcription: bool = False

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def max_chunk_bytes(self) -> int:
        return self.max_chunk_mb * 1024 * 1024


settings = Settings()
