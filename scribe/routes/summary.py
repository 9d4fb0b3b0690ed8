from dataclasses import asdict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from scribe.dependencies import Services, get_services
from scribe.errors import ScribeError
from scribe.routes.common import http_error

router = APIRouter(prefix="/api", tags=["summary"])


class SummaryEdit(BaseModel):
    summary_text: str = Field(min_length=1)


@router.post("/summary/{session_id}")
async def generate_summary(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    """Generate (or regenerate) the session's narrative summary."""
    try:
        summary = await services.summary.generate(session_id)
    except ScribeError as e:
        raise http_error(e)
    return {"message": "Summary generated successfully", "summary": asdict(summary)}


@router.get("/summary/{session_id}")
async def get_summary(
    session_id: int, services: Services = Depends(get_services)
) -> dict:
    try:
        summary = await services.summary.get(session_id)
    except ScribeError as e:
        raise http_error(e)
    return asdict(summary)


@router.put("/summary/{session_id}")
async def edit_summary(
    session_id: int, body: SummaryEdit, services: Services = Depends(get_services)
) -> dict:
    try:
        summary = await services.summary.edit(session_id, body.summary_text)
    except ScribeError as e:
        raise http_error(e)
    return {"message": "Summary updated successfully", "summary": asdict(summary)}
