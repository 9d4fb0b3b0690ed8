import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from scribe.dependencies import Services, get_services
from scribe.errors import ChunkingError

router = APIRouter(prefix="/api", tags=["uploads"])
logger = logging.getLogger(__name__)


@router.post("/uploads")
async def upload_audio(
    audio: UploadFile = File(...),
    user_id: str | None = Form(None),
    services: Services = Depends(get_services),
) -> dict:
    """Store an audio file and register it as an upload."""
    settings = services.settings
    if audio.content_type not in settings.allowed_mime_types:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid file type. Only audio files are allowed."},
        )

    content = await audio.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=400, detail={"error": "File too large"})

    storage = services.storage
    storage.ensure_dirs()
    original_name = audio.filename or "recording"
    filename, path = storage.unique_path(original_name)
    await storage.write_bytes(path, content)

    # Duration is informational; an unreadable file is still accepted here
    # and fails later, at transcription time.
    duration = None
    try:
        duration = round(await services.transcription.chunker.probe_duration(path))
    except ChunkingError as e:
        logger.warning("Could not read duration of %s: %s", path, e)

    upload = await services.store.create_upload(
        filename=filename,
        original_name=original_name,
        path=path,
        size=len(content),
        mime_type=audio.content_type,
        duration=duration,
        user_id=user_id,
    )
    logger.info("File uploaded: %s (%d bytes)", filename, len(content))
    return {"message": "File uploaded successfully", "file": asdict(upload)}


@router.get("/uploads")
async def list_uploads(services: Services = Depends(get_services)) -> list[dict]:
    return [asdict(u) for u in await services.store.list_uploads()]


@router.get("/uploads/{upload_id}")
async def get_upload(
    upload_id: int, services: Services = Depends(get_services)
) -> dict:
    upload = await services.store.get_upload(upload_id)
    if not upload:
        raise HTTPException(
            status_code=404, detail={"error": f"Upload {upload_id} not found"}
        )
    sessions = await services.store.get_upload_usage(upload_id)
    return {
        **asdict(upload),
        "usage": {
            "session_count": len(sessions),
            "sessions": [
                {"id": s.id, "title": s.title, "status": s.status} for s in sessions
            ],
        },
    }


@router.delete("/uploads/{upload_id}")
async def delete_upload(
    upload_id: int, services: Services = Depends(get_services)
) -> dict:
    store = services.store
    upload = await store.get_upload(upload_id)
    if not upload:
        raise HTTPException(
            status_code=404, detail={"error": f"Upload {upload_id} not found"}
        )

    sessions = await store.get_upload_usage(upload_id)
    if sessions:
        raise HTTPException(
            status_code=400,
            detail={
                "error": "Cannot delete upload that is being used by sessions",
                "sessions": [{"id": s.id, "title": s.title} for s in sessions],
            },
        )

    services.cleanup.delete_files([upload.path, *upload.chunk_paths])
    await store.delete_upload(upload_id)
    logger.info("Upload %s deleted", upload_id)
    return {"message": "Upload deleted successfully"}
