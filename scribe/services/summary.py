import logging
from typing import Protocol

from scribe.errors import (
    InvalidTransitionError,
    NoTranscriptionsError,
    NotFoundError,
    ProcessingError,
    ScribeError,
)
from scribe.models import Campaign, ErrorStep, SessionStatus, Summary, Transcription
from scribe.services.state import SessionStateMachine
from scribe.store import SessionStore

logger = logging.getLogger(__name__)


class TextGenerator(Protocol):
    async def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str: ...


# ---------------------------------------------------------------------------
# Prompt building
# ---------------------------------------------------------------------------

SUMMARY_PREAMBLE = (
    "You are a skilled storyteller and tabletop role-playing campaign chronicler. "
    "Below is a transcript of a game session. Please create an engaging summary that:\n\n"
    "1. Tells the story of what happened in this session\n"
    "2. Identifies key events, decisions, and character moments\n"
    "3. Mentions which characters were involved in important scenes\n"
    "4. Maintains the narrative flow and excitement of the session\n"
    "5. Uses the character names provided\n"
    "6. Focuses on story elements, combat highlights, and character development"
)


def format_transcript(transcriptions: list[Transcription]) -> str:
    """Join transcript texts with single spaces, dropping the timing."""
    return " ".join(t.text for t in transcriptions if t.text)


def build_summary_prompt(transcript: str, campaign: Campaign | None = None) -> str:
    parts = [SUMMARY_PREAMBLE]
    if campaign is not None and campaign.context:
        parts.append(
            f"Campaign context for \"{campaign.name}\" (characters, setting, "
            f"story so far):\n{campaign.context.strip()}"
        )
    parts.append(f"Here's the transcript:\n\n{transcript}")
    parts.append(
        "Please provide a compelling summary that captures the essence of this session."
    )
    return "\n\n".join(parts)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class SummaryService:
    """Generate, regenerate and manually edit session summaries."""

    def __init__(
        self,
        store: SessionStore,
        state: SessionStateMachine,
        generator: TextGenerator,
        *,
        max_tokens: int | None = 2000,
    ) -> None:
        self.store = store
        self.state = state
        self.generator = generator
        self.max_tokens = max_tokens

    async def generate(self, session_id: int) -> Summary:
        """Summarize the session's transcript and store the result.

        Missing session or transcript fail before any state change, as does
        a session another caller is already summarizing. Once the
        session is ``summarizing``, any failure is recorded with step
        ``summary`` and re-raised.
        """
        session = await self.store.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")

        transcriptions = await self.store.get_transcriptions(session_id)
        if not transcriptions:
            raise NoTranscriptionsError("No transcriptions found for this session")

        campaign = await self.store.get_campaign(session.campaign_id)
        await self.state.claim(session, SessionStatus.summarizing)

        try:
            logger.info("Starting summary generation for session %s", session_id)

            prompt = build_summary_prompt(format_transcript(transcriptions), campaign)
            text = await self.generator.chat(
                [{"role": "user", "content": prompt}], max_tokens=self.max_tokens
            )
            if not text or not text.strip():
                raise ProcessingError("Text generation returned an empty summary")

            summary = await self.store.upsert_summary(session_id, text.strip())
            await self.state.update_status(session_id, SessionStatus.completed)
        except InvalidTransitionError:
            raise
        except ScribeError as e:
            e.step = ErrorStep.summary
            await self.state.set_error(session_id, ErrorStep.summary, e.message)
            raise
        except Exception as e:
            await self.state.set_error(session_id, ErrorStep.summary, str(e))
            raise ProcessingError(str(e), step=ErrorStep.summary) from e

        logger.info("Summary generation completed for session %s", session_id)
        return summary

    async def edit(self, session_id: int, summary_text: str) -> Summary:
        """Replace the summary text by hand, keeping the generated original."""
        summary = await self.store.edit_summary(session_id, summary_text)
        if summary is None:
            raise NotFoundError(f"Summary for session {session_id} not found")
        return summary

    async def get(self, session_id: int) -> Summary:
        summary = await self.store.get_summary(session_id)
        if summary is None:
            raise NotFoundError("Summary not found")
        return summary
