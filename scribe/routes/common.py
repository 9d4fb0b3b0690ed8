from fastapi import HTTPException

from scribe.errors import ScribeError
from scribe.models import Session
from scribe.store import SessionStore


def http_error(exc: ScribeError) -> HTTPException:
    """Translate a service failure into the HTTP response for it."""
    return HTTPException(status_code=exc.status_code, detail=exc.detail())


async def get_session_or_404(store: SessionStore, session_id: int) -> Session:
    session = await store.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=404, detail={"error": f"Session {session_id} not found"}
        )
    return session
