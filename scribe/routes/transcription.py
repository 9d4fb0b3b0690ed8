from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from scribe.dependencies import Services, get_services
from scribe.errors import ScribeError
from scribe.routes.common import get_session_or_404, http_error

router = APIRouter(prefix="/api", tags=["transcription"])


class TranscriptionRequest(BaseModel):
    # Explicit path, for clients that predate uploads. Normally omitted.
    audio_file_path: str | None = None
    preserve_segments: bool = True


@router.post("/transcription/{session_id}")
async def transcribe(
    session_id: int,
    body: TranscriptionRequest | None = None,
    services: Services = Depends(get_services),
) -> dict:
    """Chunk, transcribe and store the session's recording.

    Runs to completion inside the request.
    """
    body = body or TranscriptionRequest()
    try:
        result = await services.transcription.transcribe_session(
            session_id,
            body.audio_file_path,
            preserve_segments=body.preserve_segments,
        )
    except ScribeError as e:
        raise http_error(e)
    return {
        "message": "Transcription completed successfully",
        "transcription_count": len(result.segments),
        "chunk_count": result.chunk_count,
    }


@router.get("/transcription/{session_id}")
async def get_transcriptions(
    session_id: int, services: Services = Depends(get_services)
) -> list[dict]:
    await get_session_or_404(services.store, session_id)
    rows = await services.store.get_transcriptions(session_id)
    return [asdict(r) for r in rows]
