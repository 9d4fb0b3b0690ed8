"""Failure types raised by the pipeline services.

Route handlers turn these into ``HTTPException`` responses; ``status_code``
is the HTTP status the failure maps to and ``step`` names the pipeline step
that was recorded on the session, if any.
"""

from scribe.models import ErrorStep


class ScribeError(Exception):
    status_code = 500

    def __init__(self, message: str, *, step: ErrorStep | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.step = step

    def detail(self) -> dict:
        body: dict = {"error": self.message}
        if self.step is not None:
            body["step"] = self.step.value
        return body


class NotFoundError(ScribeError):
    status_code = 404


class InvalidRequestError(ScribeError):
    status_code = 400


class InvalidTransitionError(ScribeError):
    status_code = 409


class NoAudioError(InvalidRequestError):
    pass


class AudioFileNotFoundError(NotFoundError):
    pass


class NoTranscriptionsError(InvalidRequestError):
    pass


class ChunkingError(ScribeError):
    """Duration probe or chunk encode failed; no chunk set is valid.

    ``chunk_paths`` lists the chunk files a partial split left on disk.
    """

    def __init__(
        self,
        message: str,
        *,
        step: ErrorStep | None = None,
        chunk_paths: list[str] | None = None,
    ) -> None:
        super().__init__(message, step=step)
        self.chunk_paths = list(chunk_paths or [])


class EmptyChunkError(ScribeError):
    """The speech-to-text service returned nothing for a chunk."""


class ProcessingError(ScribeError):
    """An external service failed while a session step was running."""
