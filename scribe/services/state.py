import logging

from scribe.errors import InvalidTransitionError, NotFoundError
from scribe.models import ErrorStep, Session, SessionStatus
from scribe.store import SessionStore

logger = logging.getLogger(__name__)

S = SessionStatus

# Target statuses reachable from each status. ``error`` is reachable from
# everywhere and is handled by set_error(), so it is not listed here.
TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    S.draft: frozenset({S.uploaded, S.transcribing}),
    S.pending: frozenset({S.uploaded, S.transcribing}),
    S.uploaded: frozenset({S.uploaded, S.draft, S.transcribing}),
    S.transcribing: frozenset({S.transcribed}),
    S.transcribed: frozenset({S.transcribing, S.summarizing}),
    S.summarizing: frozenset({S.completed}),
    S.completed: frozenset({S.transcribing, S.summarizing}),
    S.error: frozenset({S.uploaded, S.draft, S.transcribing, S.summarizing}),
}

_missing = set(SessionStatus) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(f"No transitions defined for statuses: {sorted(_missing)}")

# Once a session reaches one of these, its audio source is fixed.
UPLOAD_LOCKED = frozenset({S.transcribing, S.transcribed, S.summarizing, S.completed})


class SessionStateMachine:
    """Persists session status and error detail.

    Which transition a caller attempts is up to the caller; this class only
    refuses the ones missing from TRANSITIONS.
    """

    def __init__(self, store: SessionStore) -> None:
        self.store = store

    @staticmethod
    def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
        if target is S.error:
            return True
        return target in TRANSITIONS[current]

    @classmethod
    def check_transition(cls, current: SessionStatus, target: SessionStatus) -> None:
        if not cls.can_transition(current, target):
            raise InvalidTransitionError(
                f"Cannot move session from '{current.value}' to '{target.value}'"
            )

    @staticmethod
    def upload_locked(status: SessionStatus) -> bool:
        """True once transcription has started and the upload may not change."""
        return status in UPLOAD_LOCKED

    async def _get(self, session_id: int) -> Session:
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    async def update_status(self, session_id: int, status: SessionStatus) -> Session:
        session = await self._get(session_id)
        self.check_transition(session.status, status)
        logger.info(
            "Session %s: %s -> %s", session_id, session.status.value, status.value
        )
        return await self.store.update_session(session_id, status=status)

    async def claim(self, session: Session, status: SessionStatus) -> Session:
        """Start a pipeline step: move *session* from the status it was read
        with to *status*, clearing any previous error.

        Only one of several concurrent callers holding the same snapshot
        wins; the others get InvalidTransitionError and change nothing.
        """
        self.check_transition(session.status, status)
        claimed = await self.store.claim_session(session.id, session.status, status)
        if claimed is None:
            raise InvalidTransitionError(
                f"Session {session.id} is no longer '{session.status.value}'"
            )
        logger.info(
            "Session %s: %s -> %s", session.id, session.status.value, status.value
        )
        return claimed

    async def set_error(
        self, session_id: int, step: ErrorStep, message: str
    ) -> Session | None:
        logger.error("Session %s failed during %s: %s", session_id, step.value, message)
        return await self.store.update_session(
            session_id,
            status=S.error,
            error_step=step,
            error_message=message,
        )

    async def clear_error(self, session_id: int) -> Session | None:
        return await self.store.update_session(
            session_id, error_step=None, error_message=None
        )
