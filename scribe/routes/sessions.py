import datetime as dt
import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from scribe.dependencies import Services, get_services
from scribe.models import SessionStatus
from scribe.routes.common import get_session_or_404

router = APIRouter(prefix="/api", tags=["sessions"])
logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Request bodies
# ------------------------------------------------------------------


class CampaignCreate(BaseModel):
    name: str
    description: str | None = None
    context: str | None = None


class SessionCreate(BaseModel):
    campaign_id: int
    title: str
    session_date: dt.date
    audio_file_path: str | None = None
    duration: float | None = None


class LinkUpload(BaseModel):
    upload_id: int


# ------------------------------------------------------------------
# Campaign endpoints
# ------------------------------------------------------------------


@router.post("/campaigns")
async def create_campaign(
    body: CampaignCreate, services: Services = Depends(get_services)
) -> dict:
    campaign = await services.store.create_campaign(
        body.name, body.description, body.context
    )
    return asdict(campaign)


@router.get("/campaigns")
async def list_campaigns(services: Services = Depends(get_services)) -> list[dict]:
    return [asdict(c) for c in await services.store.list_campaigns()]


@router.get("/campaigns/{campaign_id}")
async def get_campaign(
    campaign_id: int, services: Services = Depends(get_services)
) -> dict:
    campaign = await services.store.get_campaign(campaign_id)
    if not campaign:
        raise HTTPException(
            status_code=404, detail={"error": f"Campaign {campaign_id} not found"}
        )
    sessions = await services.store.list_sessions(campaign_id)
    return {**asdict(campaign), "sessions": [asdict(s) for s in sessions]}


@router.delete("/campaigns/{campaign_id}")
async def delete_campaign(
    campaign_id: int, services: Services = Depends(get_services)
) -> dict:
    if not await services.store.delete_campaign(campaign_id):
        raise HTTPException(
            status_code=404, detail={"error": f"Campaign {campaign_id} not found"}
        )
    return {"message": "Campaign deleted successfully"}


# ------------------------------------------------------------------
# Session endpoints
# ------------------------------------------------------------------


@router.post("/sessions")
async def create_session(
    body: SessionCreate, services: Services = Depends(get_services)
) -> dict:
    if not await services.store.get_campaign(body.campaign_id):
        raise HTTPException(
            status_code=404, detail={"error": f"Campaign {body.campaign_id} not found"}
        )
    session = await services.store.create_session(
        body.campaign_id,
        body.title,
        body.session_date.isoformat(),
        audio_file_path=body.audio_file_path,
        duration=body.duration,
    )
    return asdict(session)


@router.get("/sessions")
async def list_sessions(
    campaign_id: int | None = None, services: Services = Depends(get_services)
) -> list[dict]:
    return [asdict(s) for s in await services.store.list_sessions(campaign_id)]


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    store = services.store
    session = await get_session_or_404(store, session_id)
    summary = await store.get_summary(session_id)
    return {
        **asdict(session),
        "transcription_count": await store.count_transcriptions(session_id),
        "summary": asdict(summary) if summary else None,
    }


@router.delete("/sessions/{session_id}")
async def delete_session(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    if not await services.store.delete_session(session_id):
        raise HTTPException(
            status_code=404, detail={"error": f"Session {session_id} not found"}
        )
    return {"message": "Session deleted successfully"}


# ------------------------------------------------------------------
# Upload linking
# ------------------------------------------------------------------


async def _link(session_id: int, upload_id: int | None, services: Services) -> dict:
    session = await get_session_or_404(services.store, session_id)
    if services.state.upload_locked(session.status):
        raise HTTPException(
            status_code=400,
            detail={"error": "Cannot change upload after transcription has started"},
        )
    if upload_id is not None and not await services.store.get_upload(upload_id):
        raise HTTPException(
            status_code=404, detail={"error": f"Upload {upload_id} not found"}
        )

    fields: dict = {"upload_id": upload_id}
    status = SessionStatus.uploaded if upload_id is not None else SessionStatus.draft
    if services.state.can_transition(session.status, status):
        fields.update(status=status, error_step=None, error_message=None)
    updated = await services.store.update_session(session_id, **fields)
    logger.info("Session %s linked to upload %s", session_id, upload_id)
    return asdict(updated)


@router.post("/sessions/{session_id}/upload")
async def link_upload(
    session_id: int, body: LinkUpload, services: Services = Depends(get_services)
) -> dict:
    session = await _link(session_id, body.upload_id, services)
    return {"message": "Upload linked to session successfully", "session": session}


@router.put("/sessions/{session_id}/upload")
async def replace_upload(
    session_id: int, body: LinkUpload, services: Services = Depends(get_services)
) -> dict:
    session = await _link(session_id, body.upload_id, services)
    return {"message": "Upload replaced successfully", "session": session}


@router.delete("/sessions/{session_id}/upload")
async def unlink_upload(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    session = await _link(session_id, None, services)
    return {"message": "Upload removed from session", "session": session}
