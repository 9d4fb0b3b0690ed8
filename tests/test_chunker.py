import math
import os

import pytest

from scribe.audio import AudioChunk, AudioChunker
from scribe.audio.audio_utils import chunk_count, chunk_path, compute_chunk_boundaries
from scribe.errors import ChunkingError


def _write(path, size: int) -> str:
    with open(path, "wb") as f:
        f.write(b"\0" * size)
    return str(path)


class FakeTools:
    """Stands in for ffprobe/ffmpeg at the chunker's subprocess seam."""

    def __init__(self, duration: str = "90.0", fail_on: str | None = None) -> None:
        self.duration = duration
        self.fail_on = fail_on
        self.calls: list[tuple[str, ...]] = []

    async def __call__(self, *args: str) -> str:
        self.calls.append(args)
        if args[0] == "ffprobe":
            if self.fail_on == "probe":
                raise ChunkingError("ffprobe failed: Invalid data found")
            return self.duration + "\n"
        output = args[-1]
        if self.fail_on and output.endswith(self.fail_on):
            raise ChunkingError("ffmpeg failed: Conversion failed!")
        _write(output, 10)
        return ""

    @property
    def encodes(self):
        return [c for c in self.calls if c[0] == "ffmpeg"]


class TestHelpers:
    def test_chunk_path_inserts_index_before_extension(self):
        assert chunk_path("/data/rec.mp3", 0) == "/data/rec_chunk0.mp3"
        assert chunk_path("/data/my.session.m4a", 12) == "/data/my.session_chunk12.m4a"

    def test_chunk_count_rounds_up(self):
        assert chunk_count(100, 100) == 1
        assert chunk_count(101, 100) == 2
        assert chunk_count(250, 100) == 3

    def test_chunk_count_rejects_empty_budget(self):
        with pytest.raises(ValueError):
            chunk_count(10, 0)

    def test_boundaries_are_equal_and_contiguous(self):
        boundaries = compute_chunk_boundaries(90.0, 3)
        assert boundaries == [(0.0, 30.0), (30.0, 30.0), (60.0, 30.0)]


class TestSplit:
    async def test_file_within_budget_is_returned_unchanged(self, tmp_path):
        source = _write(tmp_path / "small.mp3", 100)
        tools = FakeTools()
        chunker = AudioChunker(max_chunk_bytes=100)
        chunker._run = tools

        chunks = await chunker.split(source)

        assert chunks == [AudioChunk(index=0, path=source)]
        assert tools.calls == []
        assert sorted(os.listdir(tmp_path)) == ["small.mp3"]

    async def test_large_file_is_split_evenly_by_time(self, tmp_path):
        source = _write(tmp_path / "long.mp3", 250)
        tools = FakeTools(duration="90.0")
        chunker = AudioChunker(max_chunk_bytes=100, ffmpeg_bin="ffmpeg", ffprobe_bin="ffprobe")
        chunker._run = tools

        chunks = await chunker.split(source)

        assert len(chunks) == math.ceil(250 / 100)
        assert [c.path for c in chunks] == [
            str(tmp_path / f"long_chunk{i}.mp3") for i in range(3)
        ]
        assert [c.start for c in chunks] == [0.0, 30.0, 60.0]
        assert all(c.duration == pytest.approx(90.0 / 3) for c in chunks)
        assert all(os.path.exists(c.path) for c in chunks)
        # Source is never touched
        assert os.path.getsize(source) == 250

    async def test_each_encode_trims_from_its_offset(self, tmp_path):
        source = _write(tmp_path / "long.mp3", 250)
        tools = FakeTools(duration="90.0")
        chunker = AudioChunker(max_chunk_bytes=100)
        chunker._run = tools

        await chunker.split(source)

        assert len(tools.encodes) == 3
        second = next(c for c in tools.encodes if c[-1].endswith("_chunk1.mp3"))
        assert second[second.index("-ss") + 1] == "30.000"
        assert second[second.index("-t") + 1] == "30.000"
        assert second[second.index("-i") + 1] == source

    async def test_probe_failure_fails_without_encoding(self, tmp_path):
        source = _write(tmp_path / "long.mp3", 250)
        tools = FakeTools(fail_on="probe")
        chunker = AudioChunker(max_chunk_bytes=100)
        chunker._run = tools

        with pytest.raises(ChunkingError):
            await chunker.split(source)
        assert tools.encodes == []

    async def test_unreadable_duration_fails(self, tmp_path):
        source = _write(tmp_path / "long.mp3", 250)
        tools = FakeTools(duration="N/A")
        chunker = AudioChunker(max_chunk_bytes=100)
        chunker._run = tools

        with pytest.raises(ChunkingError, match="Could not read duration"):
            await chunker.split(source)

    async def test_one_failed_encode_fails_the_whole_split(self, tmp_path):
        source = _write(tmp_path / "long.mp3", 250)
        tools = FakeTools(fail_on="_chunk1.mp3")
        chunker = AudioChunker(max_chunk_bytes=100)
        chunker._run = tools

        with pytest.raises(ChunkingError, match="Conversion failed") as excinfo:
            await chunker.split(source)
        # Chunks that did get written are left for the caller to clean up
        assert (tmp_path / "long_chunk0.mp3").exists()
        assert excinfo.value.chunk_paths == [
            str(tmp_path / "long_chunk0.mp3"),
            str(tmp_path / "long_chunk2.mp3"),
        ]


class TestSubprocess:
    async def test_missing_binary_is_a_chunking_error(self, tmp_path):
        chunker = AudioChunker(
            max_chunk_bytes=100, ffprobe_bin="scribe-test-no-such-ffprobe"
        )
        with pytest.raises(ChunkingError, match="Could not start"):
            await chunker.probe_duration(str(tmp_path / "x.mp3"))
