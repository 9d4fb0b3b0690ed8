from scribe.audio.audio_utils import AudioChunk
from scribe.audio.chunker import AudioChunker

__all__ = ["AudioChunk", "AudioChunker"]
