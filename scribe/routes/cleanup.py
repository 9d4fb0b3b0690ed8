from fastapi import APIRouter, Depends

from scribe.dependencies import Services, get_services
from scribe.errors import ScribeError
from scribe.routes.common import http_error

router = APIRouter(prefix="/api/cleanup", tags=["cleanup"])


@router.post("/uploads/{upload_id}")
async def cleanup_upload(
    upload_id: int, services: Services = Depends(get_services)
) -> dict:
    """Delete a transcribed upload's audio and chunk files."""
    try:
        cleaned = await services.cleanup.cleanup_upload(upload_id)
    except ScribeError as e:
        raise http_error(e)
    return {"upload_id": upload_id, "cleaned": cleaned}


@router.post("/sessions/{session_id}")
async def cleanup_session(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    try:
        cleaned = await services.cleanup.cleanup_session(session_id)
    except ScribeError as e:
        raise http_error(e)
    return {"session_id": session_id, "cleaned": cleaned}
