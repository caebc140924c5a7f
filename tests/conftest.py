"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pytest
import yaml


class FakeStream:
    """Stand-in for asyncio.StreamReader that returns one scripted chunk per read."""

    def __init__(self, chunks: Iterable[bytes] = ()) -> None:
        self._chunks = list(chunks)

    async def read(self, n: int = -1) -> bytes:
        if n == -1:
            data = b"".join(self._chunks)
            self._chunks = []
            return data
        if not self._chunks:
            return b""
        return self._chunks.pop(0)


class FakeProcess:
    def __init__(
        self,
        stdout_chunks: Iterable[bytes] = (),
        returncode: int = 0,
        stderr: bytes = b"",
    ) -> None:
        self.stdout = FakeStream(stdout_chunks)
        self.stderr = FakeStream([stderr] if stderr else [])
        self.returncode = returncode
        self.killed = False

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        return self.returncode


@pytest.fixture
def sample_whisper_json() -> dict:
    """Return a transcript in whisper.cpp's -oj shape."""
    return {
        "result": {"language": "en"},
        "transcription": [
            {
                "timestamps": {"from": "00:00:00,000", "to": "00:00:02,500"},
                "offsets": {"from": 0, "to": 2500},
                "text": " Welcome back to the show.",
            },
            {
                "timestamps": {"from": "00:00:02,500", "to": "00:00:05,000"},
                "offsets": {"from": 2500, "to": 5000},
                "text": " Today we talk about rivers.",
                "speaker": "(speaker 1)",
            },
        ],
    }


@pytest.fixture
def sample_remote_response() -> dict:
    """Return a remote Whisper server response body."""
    return {
        "language": "en",
        "segments": [
            {
                "start": 0.0,
                "end": 1.0,
                "start_offset": 0,
                "end_offset": 10,
                "text": "Hello",
                "speaker": "A",
            },
            {
                "start": 1.0,
                "end": 2.0,
                "start_offset": 10,
                "end_offset": 20,
                "text": "world",
                "speaker": "B",
            },
            {
                "start": 2.0,
                "end": 4.0,
                "start_offset": 20,
                "end_offset": 40,
                "text": "again",
                "speaker": None,
            },
        ],
    }


@pytest.fixture
def sample_config_dict() -> dict:
    """Return a sample configuration dictionary."""
    return {
        "use_remote_whisper": False,
        "whisper_executable": "whisper-cli",
        "models_dir": "models",
        "whisper": {
            "model": "base.en",
            "language": "en",
            "threads": 8,
            "processors": 1,
            "beam_size": 5,
            "best_of": 3,
            "split_on_word": True,
            "diarize": False,
        },
        "remote_whisper": {
            "server_url": "http://whisper.local:9000/transcribe",
            "auth_token": "secret",
            "timeout": 5000,
        },
    }


@pytest.fixture
def config_file(tmp_path: Path, sample_config_dict: dict) -> Path:
    """Write sample_config_dict to a scribeline.yaml in tmp_path."""
    path = tmp_path / "scribeline.yaml"
    with open(path, "w") as f:
        yaml.dump(sample_config_dict, f)
    return path


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    path = tmp_path / "interview.wav"
    path.write_bytes(b"RIFF\x00\x00\x00\x00WAVEfmt fake audio")
    return path


@pytest.fixture
def fake_process() -> type[FakeProcess]:
    """Return the FakeProcess class for building scripted whisper.cpp runs."""
    return FakeProcess
