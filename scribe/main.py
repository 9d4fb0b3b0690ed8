import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from scribe.config import Settings, settings as default_settings
from scribe.database import init_db
from scribe.dependencies import build_services
from scribe.logging_utils import setup_logging
from scribe.routes import cleanup, sessions, summary, transcription, uploads
from scribe.services.summary import TextGenerator
from scribe.services.transcription import SpeechToText

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    speech_to_text: SpeechToText | None = None,
    text_generator: TextGenerator | None = None,
) -> FastAPI:
    settings = settings or default_settings
    setup_logging(settings.log_level, settings.log_file)
    services = build_services(
        settings, speech_to_text=speech_to_text, text_generator=text_generator
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Create SQLite tables and the upload directory on startup."""
        await init_db(settings.database_path)
        services.storage.ensure_dirs()
        logger.info("Database ready at %s", settings.database_path)
        yield

    app = FastAPI(
        title="campaign-scribe",
        description="Transcribe tabletop session recordings and chronicle them with an LLM",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(sessions.router)
    app.include_router(uploads.router)
    app.include_router(transcription.router)
    app.include_router(summary.router)
    app.include_router(cleanup.router)
    return app
