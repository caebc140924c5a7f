"""Tests for scribeline.transcribe.engine module."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from scribeline.config import ScribelineConfig, StaticConfigProvider
from scribeline.exceptions import (
    ConfigurationError,
    InputError,
    ProcessExecutionError,
    RemoteResponseError,
    RemoteTranscriptionError,
)
from scribeline.io import read_json, write_json
from scribeline.models import DirectoryModelResolver
from scribeline.progress import ProgressRecorder
from scribeline.transcribe.engine import (
    REMOTE_FALLBACK_WARNING,
    JobState,
    TranscriptionOrchestrator,
    create_orchestrator,
    output_base_path,
    transcript_json_path,
)
from scribeline.transcribe.local import LocalTranscriptionRunner
from scribeline.transcribe.remote import parse_response


class FakeDurationProvider:
    def __init__(self, duration_ms: float) -> None:
        self.duration_ms = duration_ms
        self.calls: list[Path] = []

    async def get_duration(self, path: Path) -> float:
        self.calls.append(path)
        return self.duration_ms


class FakeRemoteClient:
    def __init__(self, response: dict | None = None, error: Exception | None = None) -> None:
        self.response = response
        self.error = error
        self.calls: list[tuple] = []

    async def send(self, audio, remote_config, settings, model=None):
        self.calls.append((audio, remote_config, settings, model))
        if self.error is not None:
            raise self.error
        return parse_response(self.response)


class Harness:
    """Orchestrator wired to fakes, with a launcher that plays whisper.cpp."""

    def __init__(
        self,
        tmp_path: Path,
        config: ScribelineConfig,
        process,
        transcript_json: dict,
        remote: FakeRemoteClient | None = None,
        duration_ms: float = 10_000,
    ) -> None:
        self.progress = ProgressRecorder()
        self.remote = remote or FakeRemoteClient()
        self.duration = FakeDurationProvider(duration_ms)
        self.launches: list[list[str]] = []
        self.process = process
        self.transcript_json = transcript_json
        self.orchestrator = TranscriptionOrchestrator(
            config_provider=StaticConfigProvider(config),
            progress=self.progress,
            duration_provider=self.duration,
            model_resolver=DirectoryModelResolver(tmp_path / "models"),
            remote_client=self.remote,
            local_runner=LocalTranscriptionRunner("whisper-cli", self.progress, self._launch),
            logger=logging.getLogger("tests.engine"),
        )

    async def _launch(self, executable: str, args: list[str]):
        self.launches.append(args)
        if self.process.returncode == 0:
            output_base = Path(args[args.index("-of") + 1])
            write_json(transcript_json_path(output_base), self.transcript_json)
        return self.process


@pytest.fixture
def config(sample_config_dict: dict) -> ScribelineConfig:
    return ScribelineConfig(**sample_config_dict)


@pytest.fixture
def segment_output(fake_process):
    return fake_process(
        [
            b"[00:00:00.000 --> 00:00:02.500]   Welcome back to the show.\n",
            b"[00:00:02.500 --> 00:00:05.000]   Today we talk about rivers.\n",
        ]
    )


class TestOutputPaths:
    def test_extension_stripped(self) -> None:
        assert output_base_path(Path("/out/rec.json")) == Path("/out/rec")

    def test_json_appended_to_base(self) -> None:
        assert transcript_json_path(Path("/out/rec.v2")) == Path("/out/rec.v2.json")


class TestLocalOnly:
    @pytest.mark.asyncio
    async def test_remote_never_invoked(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json)

        transcript = await harness.orchestrator.transcribe(
            audio_file, tmp_path / "out" / "interview.json", "base.en", use_remote=False
        )

        assert harness.remote.calls == []
        assert len(harness.launches) == 1
        assert transcript.language == "en"
        assert len(transcript.items) == 2
        assert harness.orchestrator.state is JobState.DONE

    @pytest.mark.asyncio
    async def test_progress_lifecycle(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=False
        )

        assert harness.progress.events[0].kind == "step"
        assert harness.progress.events[0].step == "transcription"
        assert harness.progress.fractions("transcription") == [0.25, 0.5]
        assert harness.progress.warnings("transcription") == []

    @pytest.mark.asyncio
    async def test_model_and_output_flags(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.txt", "small", use_remote=False
        )

        args = harness.launches[0]
        assert args[0] == str(audio_file)
        assert args[args.index("-m") + 1] == str(tmp_path / "models" / "ggml-small.bin")
        assert args[args.index("-of") + 1] == str(tmp_path / "interview")
        assert "-oj" in args

    @pytest.mark.asyncio
    async def test_process_failure_propagates(
        self, tmp_path, config, fake_process, audio_file, sample_whisper_json
    ) -> None:
        process = fake_process(
            [b"[00:00:00.000 --> 00:00:01.000]  partial\n"],
            returncode=1,
            stderr=b"whisper: error\n",
        )
        harness = Harness(tmp_path, config, process, sample_whisper_json)
        output = tmp_path / "interview.json"

        with pytest.raises(ProcessExecutionError):
            await harness.orchestrator.transcribe(audio_file, output, "base.en", use_remote=False)

        assert not output.exists()
        assert harness.progress.events[-1].kind == "progress"
        assert harness.progress.events[-1].value == 0.1
        assert harness.orchestrator.state is JobState.LOCAL_RUNNING


class TestRemoteSuccess:
    @pytest.mark.asyncio
    async def test_local_skipped(
        self, tmp_path, config, segment_output, audio_file, sample_remote_response
    ) -> None:
        remote = FakeRemoteClient(response=sample_remote_response)
        harness = Harness(tmp_path, config, segment_output, {}, remote=remote)

        transcript = await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=True
        )

        assert harness.launches == []
        assert len(remote.calls) == 1
        assert [item.text for item in transcript.items] == ["Hello", "world", "again"]
        assert harness.orchestrator.state is JobState.DONE

    @pytest.mark.asyncio
    async def test_sends_audio_config_and_model(
        self, tmp_path, config, segment_output, audio_file, sample_remote_response
    ) -> None:
        remote = FakeRemoteClient(response=sample_remote_response)
        harness = Harness(tmp_path, config, segment_output, {}, remote=remote)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "large-v3", use_remote=True
        )

        audio, remote_config, settings, model = remote.calls[0]
        assert audio == audio_file.read_bytes()
        assert remote_config == config.remote_whisper
        assert settings.threads == 8
        assert model == "large-v3"

    @pytest.mark.asyncio
    async def test_synthetic_progress(
        self, tmp_path, config, segment_output, audio_file, sample_remote_response
    ) -> None:
        remote = FakeRemoteClient(response=sample_remote_response)
        harness = Harness(tmp_path, config, segment_output, {}, remote=remote)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=True
        )

        fractions = harness.progress.fractions("transcription")
        assert len(fractions) == len(sample_remote_response["segments"])
        assert fractions == sorted(fractions)
        assert fractions[-1] == 1.0

    @pytest.mark.asyncio
    async def test_writes_whisper_json(
        self, tmp_path, config, segment_output, audio_file, sample_remote_response
    ) -> None:
        remote = FakeRemoteClient(response=sample_remote_response)
        harness = Harness(tmp_path, config, segment_output, {}, remote=remote)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.srt", "base.en", use_remote=True
        )

        written = read_json(tmp_path / "interview.json")
        assert written["result"] == {"language": "en"}
        assert written["transcription"][0] == {
            "timestamps": {"from": 0.0, "to": 1.0},
            "offsets": {"from": 0, "to": 10},
            "text": "Hello",
            "speaker": "A",
        }


class TestRemoteFallback:
    @pytest.mark.asyncio
    async def test_connection_error_falls_back_once(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        remote = FakeRemoteClient(error=RemoteTranscriptionError("Connection refused"))
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json, remote=remote)

        transcript = await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=True
        )

        assert len(remote.calls) == 1
        assert harness.progress.warnings("transcription") == [REMOTE_FALLBACK_WARNING]
        assert len(harness.launches) == 1
        assert transcript.language == "en"
        assert harness.orchestrator.state is JobState.DONE

    @pytest.mark.asyncio
    async def test_settings_intact_after_fallback(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        remote = FakeRemoteClient(error=RemoteTranscriptionError("Connection refused"))
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json, remote=remote)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=True
        )

        args = harness.launches[0]
        assert args[args.index("-t") + 1] == "8"
        assert args[args.index("-bs") + 1] == "5"
        assert args[args.index("-bo") + 1] == "3"
        assert args[args.index("-l") + 1] == "en"
        assert "-sow" in args

    @pytest.mark.asyncio
    async def test_warning_precedes_local_progress(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        remote = FakeRemoteClient(error=RemoteResponseError("no segments"))
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json, remote=remote)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=True
        )

        kinds = [event.kind for event in harness.progress.events]
        assert kinds == ["step", "error", "progress", "progress"]

    @pytest.mark.asyncio
    async def test_fallback_logged(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json, caplog
    ) -> None:
        remote = FakeRemoteClient(error=RemoteTranscriptionError("HTTP 502"))
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json, remote=remote)

        with caplog.at_level(logging.INFO, logger="tests.engine"):
            await harness.orchestrator.transcribe(
                audio_file, tmp_path / "interview.json", "base.en", use_remote=True
            )

        assert "HTTP 502" in caplog.text
        assert "Falling back" in caplog.text

    @pytest.mark.asyncio
    async def test_local_failure_after_fallback_propagates(
        self, tmp_path, config, fake_process, audio_file, sample_whisper_json
    ) -> None:
        remote = FakeRemoteClient(error=RemoteTranscriptionError("timed out"))
        process = fake_process([], returncode=2)
        harness = Harness(tmp_path, config, process, sample_whisper_json, remote=remote)

        with pytest.raises(ProcessExecutionError):
            await harness.orchestrator.transcribe(
                audio_file, tmp_path / "interview.json", "base.en", use_remote=True
            )

        assert len(remote.calls) == 1
        assert len(harness.progress.warnings("transcription")) == 1


class TestFatalBeforeExecution:
    @pytest.mark.asyncio
    async def test_missing_remote_config(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        no_remote = config.model_copy(update={"remote_whisper": None})
        harness = Harness(tmp_path, no_remote, segment_output, sample_whisper_json)

        with pytest.raises(ConfigurationError, match="Remote Whisper configuration is missing"):
            await harness.orchestrator.transcribe(
                audio_file, tmp_path / "interview.json", "base.en", use_remote=True
            )

        assert harness.remote.calls == []
        assert harness.launches == []

    @pytest.mark.asyncio
    async def test_zero_duration(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        harness = Harness(
            tmp_path, config, segment_output, sample_whisper_json, duration_ms=0
        )

        with pytest.raises(InputError):
            await harness.orchestrator.transcribe(
                audio_file, tmp_path / "interview.json", "base.en", use_remote=True
            )

        assert harness.remote.calls == []
        assert harness.launches == []

    @pytest.mark.asyncio
    async def test_duration_resolved_first(
        self, tmp_path, config, segment_output, audio_file, sample_whisper_json
    ) -> None:
        harness = Harness(tmp_path, config, segment_output, sample_whisper_json)

        await harness.orchestrator.transcribe(
            audio_file, tmp_path / "interview.json", "base.en", use_remote=False
        )

        assert harness.duration.calls == [audio_file]


class TestCreateOrchestrator:
    def test_wires_config(self, config_file: Path) -> None:
        progress = ProgressRecorder()

        orchestrator = create_orchestrator(config_file, progress)

        assert orchestrator.progress is progress
        assert orchestrator.local_runner.executable == "whisper-cli"
        assert orchestrator.model_resolver.get_model_path("base") == (
            config_file.parent / "models" / "ggml-base.bin"
        )
