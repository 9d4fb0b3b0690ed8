from types import SimpleNamespace

import pytest

from scribe.clients import GroqClient
from scribe.clients import whisper_client
from scribe.config import Settings
from scribe.dependencies import build_speech_to_text


class FakeVerboseJson:
    def __init__(self, segments):
        self._segments = segments

    def model_dump(self):
        return {"text": "ignored", "segments": self._segments}


def _groq_with(transcription_reply=None, chat_reply=None):
    calls = []

    async def create_transcription(**kwargs):
        calls.append(kwargs)
        return transcription_reply

    async def create_completion(**kwargs):
        calls.append(kwargs)
        return chat_reply

    client = GroqClient(model="llama-test", api_key="gsk-test", transcription_model="whisper-test")
    client._client = SimpleNamespace(
        audio=SimpleNamespace(transcriptions=SimpleNamespace(create=create_transcription)),
        chat=SimpleNamespace(completions=SimpleNamespace(create=create_completion)),
    )
    return client, calls


async def test_groq_segments_are_parsed():
    reply = FakeVerboseJson(
        [
            {"start": 0, "end": 2.5, "text": " Roll for initiative. ", "avg_logprob": -0.123456},
            {"start": 2.5, "end": 4, "text": "Nat twenty!", "avg_logprob": None},
        ]
    )
    client, calls = _groq_with(transcription_reply=reply)

    segments = await client.transcribe_segments(b"abc", "chunk0.mp3")

    assert [s.text for s in segments] == ["Roll for initiative.", "Nat twenty!"]
    assert segments[0].end == 2.5
    assert segments[0].confidence == -0.1235
    assert segments[1].confidence == 0.0
    assert calls[0]["file"] == ("chunk0.mp3", b"abc")
    assert calls[0]["model"] == "whisper-test"
    assert calls[0]["response_format"] == "verbose_json"


async def test_groq_segments_missing_is_empty():
    client, _ = _groq_with(transcription_reply=FakeVerboseJson(None))
    assert await client.transcribe_segments(b"abc", "a.mp3") == []


async def test_groq_text_transcription():
    client, calls = _groq_with(transcription_reply=SimpleNamespace(text="  hello table "))
    assert await client.transcribe_text(b"abc", "a.mp3") == "hello table"
    assert calls[0]["response_format"] == "json"


async def test_groq_chat_passes_only_given_options():
    reply = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="Recap"))])
    client, calls = _groq_with(chat_reply=reply)

    text = await client.chat([{"role": "user", "content": "hi"}], max_tokens=100)

    assert text == "Recap"
    assert calls[0]["model"] == "llama-test"
    assert calls[0]["max_tokens"] == 100
    assert "temperature" not in calls[0]


async def test_groq_chat_without_choices():
    client, _ = _groq_with(chat_reply=SimpleNamespace(choices=[]))
    assert await client.chat([]) == ""


class FakeWhisperModel:
    instances = 0

    def __init__(self, name, device, compute_type):
        FakeWhisperModel.instances += 1
        self.name = name

    def transcribe(self, audio, beam_size):
        assert audio.read() == b"pcm"
        segments = (
            SimpleNamespace(start=s, end=s + 1.0, text=f" line {i} ", avg_logprob=-0.33333)
            for i, s in enumerate([0.0, 1.0])
        )
        return segments, SimpleNamespace(duration=2.0)


async def test_whisper_model_loads_lazily_once(monkeypatch):
    monkeypatch.setattr(whisper_client, "WhisperModel", FakeWhisperModel)
    FakeWhisperModel.instances = 0
    client = whisper_client.WhisperClient("tiny")
    assert FakeWhisperModel.instances == 0

    segments = await client.transcribe_segments(b"pcm", "a.wav")
    text = await client.transcribe_text(b"pcm", "a.wav")

    assert FakeWhisperModel.instances == 1
    assert [(s.start, s.end, s.text) for s in segments] == [(0.0, 1.0, "line 0"), (1.0, 2.0, "line 1")]
    assert segments[0].confidence == -0.3333
    assert text == "line 0 line 1"


def test_backend_selection(tmp_path):
    local = Settings(transcription_backend="local", whisper_model="tiny", database_path=str(tmp_path / "x.db"))
    assert isinstance(build_speech_to_text(local, None), whisper_client.WhisperClient)

    groq = GroqClient(api_key="gsk-test")
    hosted = Settings(transcription_backend="groq", database_path=str(tmp_path / "x.db"))
    assert build_speech_to_text(hosted, groq) is groq

    with pytest.raises(ValueError):
        build_speech_to_text(Settings(transcription_backend="carrier-pigeon"), groq)
