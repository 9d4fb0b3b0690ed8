import json
from typing import Iterable

from scribe.database import connect
from scribe.models import (
    Campaign,
    Session,
    SessionStatus,
    Summary,
    Transcription,
    TranscriptSegment,
    Upload,
    UploadStatus,
)

# Columns update_session() may touch. Everything else is fixed at creation.
SESSION_UPDATABLE = frozenset(
    {
        "title",
        "session_date",
        "upload_id",
        "audio_file_path",
        "duration",
        "status",
        "error_step",
        "error_message",
    }
)


def _column_value(value):
    if hasattr(value, "value"):  # str enums are stored by value
        return value.value
    return value


class SessionStore:
    """Repository over the SQLite database.

    Every method opens its own short-lived connection, so one store instance
    can be shared by all requests of an app.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    async def create_campaign(
        self, name: str, description: str | None = None, context: str | None = None
    ) -> Campaign:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "INSERT INTO campaigns (name, description, context) VALUES (?, ?, ?)",
                (name, description, context),
            )
            await conn.commit()
            row = await conn.execute(
                "SELECT * FROM campaigns WHERE id = ?", (cursor.lastrowid,)
            )
            return Campaign.from_row(await row.fetchone())

    async def list_campaigns(self) -> list[Campaign]:
        async with connect(self.db_path) as conn:
            rows = await conn.execute("SELECT * FROM campaigns ORDER BY created_at DESC, id DESC")
            return [Campaign.from_row(r) for r in await rows.fetchall()]

    async def get_campaign(self, campaign_id: int) -> Campaign | None:
        async with connect(self.db_path) as conn:
            row = await conn.execute(
                "SELECT * FROM campaigns WHERE id = ?", (campaign_id,)
            )
            found = await row.fetchone()
            return Campaign.from_row(found) if found else None

    async def delete_campaign(self, campaign_id: int) -> bool:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "DELETE FROM campaigns WHERE id = ?", (campaign_id,)
            )
            await conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(
        self,
        campaign_id: int,
        title: str,
        session_date: str,
        *,
        audio_file_path: str | None = None,
        duration: float | None = None,
        status: SessionStatus = SessionStatus.draft,
    ) -> Session:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "INSERT INTO sessions "
                "(campaign_id, title, session_date, audio_file_path, duration, status) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (campaign_id, title, session_date, audio_file_path, duration, status.value),
            )
            await conn.commit()
            row = await conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (cursor.lastrowid,)
            )
            return Session.from_row(await row.fetchone())

    async def list_sessions(self, campaign_id: int | None = None) -> list[Session]:
        async with connect(self.db_path) as conn:
            if campaign_id is not None:
                rows = await conn.execute(
                    "SELECT * FROM sessions WHERE campaign_id = ? "
                    "ORDER BY session_date DESC, created_at DESC",
                    (campaign_id,),
                )
            else:
                rows = await conn.execute(
                    "SELECT * FROM sessions ORDER BY session_date DESC, created_at DESC"
                )
            return [Session.from_row(r) for r in await rows.fetchall()]

    async def get_session(self, session_id: int) -> Session | None:
        async with connect(self.db_path) as conn:
            row = await conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            )
            found = await row.fetchone()
            return Session.from_row(found) if found else None

    async def update_session(self, session_id: int, **fields) -> Session | None:
        """Apply a partial update and bump ``updated_at``.

        Returns the updated session, or None if it does not exist.
        """
        unknown = set(fields) - SESSION_UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update session columns: {sorted(unknown)}")

        assignments = [f"{name} = ?" for name in fields]
        assignments.append("updated_at = CURRENT_TIMESTAMP")
        params = [_column_value(v) for v in fields.values()]
        params.append(session_id)

        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                f"UPDATE sessions SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
            row = await conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            )
            return Session.from_row(await row.fetchone())

    async def claim_session(
        self, session_id: int, expected: SessionStatus, status: SessionStatus
    ) -> Session | None:
        """Move a session to *status* only if it is still *expected*.

        Clears any recorded error. Returns None when the session is gone or
        another caller changed its status first.
        """
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                """
                UPDATE sessions
                SET status = ?, error_step = NULL, error_message = NULL,
                    updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND status = ?
                """,
                (status.value, session_id, expected.value),
            )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
            row = await conn.execute(
                "SELECT * FROM sessions WHERE id = ?", (session_id,)
            )
            return Session.from_row(await row.fetchone())

    async def delete_session(self, session_id: int) -> bool:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "DELETE FROM sessions WHERE id = ?", (session_id,)
            )
            await conn.commit()
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Transcriptions
    # ------------------------------------------------------------------

    async def replace_transcriptions(
        self, session_id: int, segments: Iterable[TranscriptSegment]
    ) -> int:
        """Swap the session's transcript for *segments* in one transaction.

        Readers see either the old rows or the new rows, never a mix.
        Returns the number of rows written.
        """
        rows = [
            (session_id, seg.start, seg.end, seg.text, seg.confidence)
            for seg in segments
        ]
        async with connect(self.db_path) as conn:
            try:
                await conn.execute(
                    "DELETE FROM transcriptions WHERE session_id = ?", (session_id,)
                )
                await conn.executemany(
                    "INSERT INTO transcriptions "
                    "(session_id, start_time, end_time, text, confidence) "
                    "VALUES (?, ?, ?, ?, ?)",
                    rows,
                )
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
        return len(rows)

    async def get_transcriptions(self, session_id: int) -> list[Transcription]:
        async with connect(self.db_path) as conn:
            rows = await conn.execute(
                "SELECT * FROM transcriptions WHERE session_id = ? "
                "ORDER BY start_time, id",
                (session_id,),
            )
            return [Transcription.from_row(r) for r in await rows.fetchall()]

    async def count_transcriptions(self, session_id: int) -> int:
        async with connect(self.db_path) as conn:
            row = await conn.execute(
                "SELECT COUNT(*) AS n FROM transcriptions WHERE session_id = ?",
                (session_id,),
            )
            return (await row.fetchone())["n"]

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    async def upsert_summary(self, session_id: int, summary_text: str) -> Summary:
        """Create the summary, or overwrite its text on regeneration.

        The edit metadata (``is_edited``, ``original_text``, ``edited_at``)
        belongs to edit_summary() and is left alone here.
        """
        async with connect(self.db_path) as conn:
            await conn.execute(
                "INSERT INTO summaries (session_id, summary_text) VALUES (?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET "
                "summary_text = excluded.summary_text, "
                "updated_at = CURRENT_TIMESTAMP",
                (session_id, summary_text),
            )
            await conn.commit()
            row = await conn.execute(
                "SELECT * FROM summaries WHERE session_id = ?", (session_id,)
            )
            return Summary.from_row(await row.fetchone())

    async def edit_summary(self, session_id: int, summary_text: str) -> Summary | None:
        """Manual edit. The pre-edit text is kept in ``original_text`` on the
        first edit only. Returns None if the session has no summary."""
        async with connect(self.db_path) as conn:
            # SQLite evaluates every SET expression against the old row.
            cursor = await conn.execute(
                "UPDATE summaries SET "
                "original_text = CASE WHEN is_edited = 0 THEN summary_text "
                "ELSE original_text END, "
                "summary_text = ?, "
                "is_edited = 1, "
                "edited_at = CURRENT_TIMESTAMP, "
                "updated_at = CURRENT_TIMESTAMP "
                "WHERE session_id = ?",
                (summary_text, session_id),
            )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
            row = await conn.execute(
                "SELECT * FROM summaries WHERE session_id = ?", (session_id,)
            )
            return Summary.from_row(await row.fetchone())

    async def get_summary(self, session_id: int) -> Summary | None:
        async with connect(self.db_path) as conn:
            row = await conn.execute(
                "SELECT * FROM summaries WHERE session_id = ?", (session_id,)
            )
            found = await row.fetchone()
            return Summary.from_row(found) if found else None

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    async def create_upload(
        self,
        *,
        filename: str,
        original_name: str,
        path: str,
        size: int,
        mime_type: str,
        duration: float | None = None,
        user_id: str | None = None,
    ) -> Upload:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "INSERT INTO uploads "
                "(user_id, filename, original_name, path, size, mime_type, duration, status) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    user_id,
                    filename,
                    original_name,
                    path,
                    size,
                    mime_type,
                    duration,
                    UploadStatus.uploaded.value,
                ),
            )
            await conn.commit()
            row = await conn.execute(
                "SELECT * FROM uploads WHERE id = ?", (cursor.lastrowid,)
            )
            return Upload.from_row(await row.fetchone())

    async def list_uploads(self) -> list[Upload]:
        async with connect(self.db_path) as conn:
            rows = await conn.execute("SELECT * FROM uploads ORDER BY created_at DESC, id DESC")
            return [Upload.from_row(r) for r in await rows.fetchall()]

    async def get_upload(self, upload_id: int) -> Upload | None:
        async with connect(self.db_path) as conn:
            row = await conn.execute(
                "SELECT * FROM uploads WHERE id = ?", (upload_id,)
            )
            found = await row.fetchone()
            return Upload.from_row(found) if found else None

    async def update_upload_status(
        self,
        upload_id: int,
        status: UploadStatus,
        chunk_paths: list[str] | None = None,
    ) -> Upload | None:
        """Set the upload status; *chunk_paths*, when given, replaces the
        recorded list of derived chunk files."""
        async with connect(self.db_path) as conn:
            if chunk_paths is None:
                cursor = await conn.execute(
                    "UPDATE uploads SET status = ?, updated_at = CURRENT_TIMESTAMP "
                    "WHERE id = ?",
                    (status.value, upload_id),
                )
            else:
                cursor = await conn.execute(
                    "UPDATE uploads SET status = ?, chunk_paths = ?, "
                    "updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (status.value, json.dumps(chunk_paths), upload_id),
                )
            await conn.commit()
            if cursor.rowcount == 0:
                return None
            row = await conn.execute(
                "SELECT * FROM uploads WHERE id = ?", (upload_id,)
            )
            return Upload.from_row(await row.fetchone())

    async def get_upload_usage(self, upload_id: int) -> list[Session]:
        """Sessions that reference the upload."""
        async with connect(self.db_path) as conn:
            rows = await conn.execute(
                "SELECT * FROM sessions WHERE upload_id = ? ORDER BY id",
                (upload_id,),
            )
            return [Session.from_row(r) for r in await rows.fetchall()]

    async def delete_upload(self, upload_id: int) -> bool:
        async with connect(self.db_path) as conn:
            cursor = await conn.execute(
                "DELETE FROM uploads WHERE id = ?", (upload_id,)
            )
            await conn.commit()
            return cursor.rowcount > 0
