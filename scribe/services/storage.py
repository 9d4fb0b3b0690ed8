import logging
import os
import time
import uuid

import aiofiles

logger = logging.getLogger(__name__)


class FileStorage:
    """Local-filesystem storage for uploaded recordings and their chunks."""

    def __init__(self, upload_dir: str) -> None:
        self.upload_dir = upload_dir

    def ensure_dirs(self) -> None:
        os.makedirs(self.upload_dir, exist_ok=True)

    def unique_path(self, original_name: str) -> tuple[str, str]:
        """Return ``(filename, path)`` for a new upload, keeping its extension."""
        ext = os.path.splitext(original_name)[1]
        filename = f"{int(time.time() * 1000)}-{uuid.uuid4()}{ext}"
        return filename, os.path.join(self.upload_dir, filename)

    @staticmethod
    def exists(path: str) -> bool:
        return os.path.isfile(path)

    @staticmethod
    def size(path: str) -> int:
        return os.path.getsize(path)

    @staticmethod
    async def read_bytes(path: str) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    @staticmethod
    async def write_bytes(path: str, data: bytes) -> None:
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)

    @staticmethod
    def delete(path: str) -> bool:
        """Remove *path*. Returns False if it was already gone.

        Any other OS error propagates to the caller.
        """
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.info("File already deleted or missing: %s", path)
            return False
        logger.info("Deleted file: %s", path)
        return True
