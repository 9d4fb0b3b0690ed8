from groq import AsyncGroq

from scribe.config import settings
from scribe.models import TranscriptSegment

# Reference list of chat models currently available on Groq's platform.
# See https://console.groq.com/docs/models for the authoritative list.
AVAILABLE_MODELS = [
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
    "meta-llama/llama-4-scout-17b-16e-instruct",
    "meta-llama/llama-4-maverick-17b-128e-instruct",
    "moonshotai/kimi-k2-instruct",
]

# Hosted Whisper models. Both accept at most 25 MB per request on the free
# tier, which is where the chunker's default budget comes from.
TRANSCRIPTION_MODELS = [
    "whisper-large-v3",
    "whisper-large-v3-turbo",
]


class GroqClient:
    """Async wrapper around the official Groq SDK.

    Serves both external services the pipeline talks to::

        groq = GroqClient()
        text = await groq.chat(messages)                       # summaries
        segments = await groq.transcribe_segments(data, "a.mp3")  # speech-to-text

    One ``AsyncGroq`` instance (and its httpx session) is shared by both.
    """

    def __init__(
        self,
        model: str | None = None,
        api_key: str | None = None,
        transcription_model: str | None = None,
    ) -> None:
        self._model = model or settings.default_model
        self._transcription_model = transcription_model or settings.transcription_model
        self._client = AsyncGroq(api_key=api_key or settings.groq_api_key)

    @property
    def default_model(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Completions
    # ------------------------------------------------------------------
    async def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """Plain-text chat completion. Returns the content string ("" if none)."""
        kwargs: dict = {
            "model": model or self._model,
            "messages": messages,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        resp = await self._client.chat.completions.create(**kwargs)
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    # ------------------------------------------------------------------
    # Speech-to-text
    # ------------------------------------------------------------------
    async def transcribe_segments(
        self, audio: bytes, filename: str
    ) -> list[TranscriptSegment]:
        """Transcribe *audio* and return its timestamped segments.

        Timestamps are relative to the start of *audio*. ``confidence`` is
        Whisper's average log-probability (negative; closer to 0 is better).
        """
        resp = await self._client.audio.transcriptions.create(
            file=(filename, audio),
            model=self._transcription_model,
            response_format="verbose_json",
            timestamp_granularities=["segment"],
        )
        data = resp.model_dump()
        return [
            TranscriptSegment(
                start=float(seg["start"]),
                end=float(seg["end"]),
                text=seg["text"].strip(),
                confidence=round(float(seg.get("avg_logprob") or 0.0), 4),
            )
            for seg in data.get("segments") or []
        ]

    async def transcribe_text(self, audio: bytes, filename: str) -> str:
        """Transcribe *audio* to plain text, discarding timing."""
        resp = await self._client.audio.transcriptions.create(
            file=(filename, audio),
            model=self._transcription_model,
            response_format="json",
        )
        return (resp.text or "").strip()
