import os

import pytest

from fakes import FakeChunker
from scribe.config import Settings
from scribe.database import init_db
from scribe.services.cleanup import CleanupService
from scribe.services.state import SessionStateMachine
from scribe.services.storage import FileStorage
from scribe.services.summary import SummaryService
from scribe.services.transcription import TranscriptionService
from scribe.store import SessionStore


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_path=str(tmp_path / "test.db"),
        upload_dir=str(tmp_path / "uploads"),
        ffprobe_bin="scribe-test-missing-ffprobe",
        ffmpeg_bin="scribe-test-missing-ffmpeg",
        log_level="WARNING",
    )


@pytest.fixture
async def store(settings) -> SessionStore:
    await init_db(settings.database_path)
    return SessionStore(settings.database_path)


@pytest.fixture
def storage(settings) -> FileStorage:
    storage = FileStorage(settings.upload_dir)
    storage.ensure_dirs()
    return storage


@pytest.fixture
def state(store) -> SessionStateMachine:
    return SessionStateMachine(store)


@pytest.fixture
def cleanup(store, storage) -> CleanupService:
    return CleanupService(store, storage)


@pytest.fixture
def make_transcription(store, state, storage, cleanup):
    def _make(stt, chunker=None, **kwargs) -> TranscriptionService:
        return TranscriptionService(
            store,
            state,
            chunker or FakeChunker(),
            stt,
            storage,
            cleanup,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_summary(store, state):
    def _make(generator) -> SummaryService:
        return SummaryService(store, state, generator, max_tokens=500)

    return _make


@pytest.fixture
async def campaign(store):
    return await store.create_campaign(
        "Curse of the Pale King", "A gothic horror campaign", "Party: Mira (rogue), Tor (cleric)."
    )


@pytest.fixture
def audio_file(storage):
    path = os.path.join(storage.upload_dir, "session-one.mp3")
    with open(path, "wb") as f:
        f.write(b"ID3 fake mp3 payload")
    return path
