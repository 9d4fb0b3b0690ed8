import enum
import json
from dataclasses import dataclass, field, replace


class SessionStatus(str, enum.Enum):
    draft = "draft"
    pending = "pending"  # legacy alias of draft
    uploaded = "uploaded"
    transcribing = "transcribing"
    transcribed = "transcribed"
    summarizing = "summarizing"
    completed = "completed"
    error = "error"


class UploadStatus(str, enum.Enum):
    uploaded = "uploaded"
    transcribing = "transcribing"
    transcribed = "transcribed"
    cleaned = "cleaned"


class ErrorStep(str, enum.Enum):
    transcription = "transcription"
    summary = "summary"


@dataclass
class Campaign:
    id: int
    name: str
    description: str | None
    context: str | None
    created_at: str

    @classmethod
    def from_row(cls, row) -> "Campaign":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            context=row["context"],
            created_at=row["created_at"],
        )


@dataclass
class Session:
    id: int
    campaign_id: int
    title: str
    session_date: str
    upload_id: int | None
    audio_file_path: str | None  # legacy direct path, predates uploads
    duration: float | None
    status: SessionStatus
    error_step: ErrorStep | None
    error_message: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row) -> "Session":
        return cls(
            id=row["id"],
            campaign_id=row["campaign_id"],
            title=row["title"],
            session_date=row["session_date"],
            upload_id=row["upload_id"],
            audio_file_path=row["audio_file_path"],
            duration=row["duration"],
            status=SessionStatus(row["status"]),
            error_step=ErrorStep(row["error_step"]) if row["error_step"] else None,
            error_message=row["error_message"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass
class Upload:
    id: int
    user_id: str | None
    filename: str
    original_name: str
    path: str
    size: int
    mime_type: str
    duration: float | None
    status: UploadStatus
    chunk_paths: list[str] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def from_row(cls, row) -> "Upload":
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            filename=row["filename"],
            original_name=row["original_name"],
            path=row["path"],
            size=row["size"],
            mime_type=row["mime_type"],
            duration=row["duration"],
            status=UploadStatus(row["status"]),
            chunk_paths=json.loads(row["chunk_paths"] or "[]"),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


@dataclass(frozen=True)
class TranscriptSegment:
    """A timestamped span of transcribed text, in seconds."""

    start: float
    end: float
    text: str
    confidence: float = 0.0

    @property
    def duration(self) -> float:
        return self.end - self.start

    def shifted(self, offset: float) -> "TranscriptSegment":
        return replace(self, start=self.start + offset, end=self.end + offset)


@dataclass
class Transcription:
    id: int
    session_id: int
    start_time: float
    end_time: float
    text: str
    confidence: float

    @classmethod
    def from_row(cls, row) -> "Transcription":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            text=row["text"],
            confidence=row["confidence"],
        )


@dataclass
class Summary:
    id: int
    session_id: int
    summary_text: str
    is_edited: bool
    original_text: str | None
    created_at: str
    updated_at: str
    edited_at: str | None

    @classmethod
    def from_row(cls, row) -> "Summary":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            summary_text=row["summary_text"],
            is_edited=bool(row["is_edited"]),
            original_text=row["original_text"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            edited_at=row["edited_at"],
        )
