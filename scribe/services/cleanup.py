import asyncio
import logging

from scribe.errors import NotFoundError
from scribe.models import SessionStatus, UploadStatus
from scribe.services.storage import FileStorage
from scribe.store import SessionStore

logger = logging.getLogger(__name__)

# Session statuses at which the transcript is already durable.
_TRANSCRIPT_SAVED = frozenset(
    {
        SessionStatus.transcribed,
        SessionStatus.summarizing,
        SessionStatus.completed,
    }
)


class CleanupService:
    """Delete recordings and chunk files once their transcript is saved.

    Cleanup failures never propagate into session state: a file that cannot
    be removed is logged and skipped.
    """

    def __init__(self, store: SessionStore, storage: FileStorage) -> None:
        self.store = store
        self.storage = storage

    def delete_file(self, path: str) -> bool:
        """Idempotent delete. Returns True if the file was removed or was
        already gone, False if removal failed."""
        try:
            self.storage.delete(path)
        except OSError as e:
            logger.error("Could not delete %s: %s", path, e)
            return False
        return True

    def delete_files(self, paths: list[str]) -> int:
        """Delete every path; returns how many could not be removed."""
        return sum(1 for path in paths if not self.delete_file(path))

    async def cleanup_upload(self, upload_id: int) -> bool:
        """Remove an upload's audio and chunk files and mark it ``cleaned``.

        Only runs for uploads in ``transcribed`` state; anything else is
        skipped with a warning and False is returned.
        """
        upload = await self.store.get_upload(upload_id)
        if upload is None:
            raise NotFoundError(f"Upload {upload_id} not found")

        if upload.status is not UploadStatus.transcribed:
            logger.warning(
                "Upload %s is %s, not transcribed; skipping cleanup",
                upload_id,
                upload.status.value,
            )
            return False

        failures = self.delete_files([upload.path, *upload.chunk_paths])
        await self.store.update_upload_status(upload_id, UploadStatus.cleaned, [])
        if failures:
            logger.warning(
                "Upload %s cleaned with %d file(s) left behind", upload_id, failures
            )
        else:
            logger.info("Cleaned up files for upload %s", upload_id)
        return True

    async def cleanup_session(self, session_id: int) -> bool:
        """Clean the session's upload and its legacy audio file, if any."""
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")

        if session.status not in _TRANSCRIPT_SAVED:
            logger.warning(
                "Session %s is %s; audio is still needed, skipping cleanup",
                session_id,
                session.status.value,
            )
            return False

        upload_path = None
        if session.upload_id is not None:
            upload = await self.store.get_upload(session.upload_id)
            if upload is not None:
                upload_path = upload.path
                await self.cleanup_upload(upload.id)

        if session.audio_file_path and session.audio_file_path != upload_path:
            self.delete_file(session.audio_file_path)

        logger.info("Cleaned up files for session %s", session_id)
        return True

    async def batch_cleanup(self, upload_ids: list[int]) -> int:
        """Clean several uploads concurrently; returns how many were cleaned."""
        results = await asyncio.gather(
            *(self.cleanup_upload(upload_id) for upload_id in upload_ids),
            return_exceptions=True,
        )
        cleaned = 0
        for upload_id, result in zip(upload_ids, results):
            if isinstance(result, Exception):
                logger.error("Cleanup of upload %s failed: %s", upload_id, result)
            elif result:
                cleaned += 1
        logger.info("Batch cleanup: %d/%d uploads cleaned", cleaned, len(upload_ids))
        return cleaned
