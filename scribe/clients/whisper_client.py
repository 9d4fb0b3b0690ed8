import asyncio
import io
import logging

from faster_whisper import WhisperModel

from scribe.models import TranscriptSegment

logger = logging.getLogger(__name__)


class WhisperClient:
    """Local speech-to-text backend around a faster-whisper model.

    The model is downloaded and loaded on the first transcription, not at
    construction time or server startup. Inference is blocking, so each call
    runs in a worker thread via ``asyncio.to_thread``.
    """

    def __init__(
        self, model_name: str = "small", device: str = "cpu", compute_type: str = "int8"
    ) -> None:
        self.model_name = model_name
        self.device = device
        self.compute_type = compute_type
        self._model: WhisperModel | None = None

    @property
    def model(self) -> WhisperModel:
        if self._model is None:
            logger.info("Loading whisper model %s on %s", self.model_name, self.device)
            self._model = WhisperModel(
                self.model_name, device=self.device, compute_type=self.compute_type
            )
        return self._model

    def _transcribe_blocking(self, audio: bytes) -> list[TranscriptSegment]:
        segments, _info = self.model.transcribe(io.BytesIO(audio), beam_size=5)
        # segments is a lazy generator; the list comprehension forces evaluation
        return [
            TranscriptSegment(
                start=seg.start,
                end=seg.end,
                text=seg.text.strip(),
                confidence=round(seg.avg_logprob, 4),
            )
            for seg in segments
        ]

    async def transcribe_segments(
        self, audio: bytes, filename: str
    ) -> list[TranscriptSegment]:
        logger.debug("Transcribing %s locally (%d bytes)", filename, len(audio))
        return await asyncio.to_thread(self._transcribe_blocking, audio)

    async def transcribe_text(self, audio: bytes, filename: str) -> str:
        segments = await self.transcribe_segments(audio, filename)
        return " ".join(seg.text for seg in segments if seg.text).strip()
