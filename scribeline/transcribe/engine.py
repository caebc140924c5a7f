"""
scribeline.transcribe.engine - Transcription orchestrator.

Chooses between the remote Whisper server and the local whisper.cpp
process, drives the chosen strategy, and reports progress on the
"transcription" step. A failed remote attempt is reported as a warning and
the job falls back to local processing once.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path

from scribeline.config import ConfigProvider, YamlConfigProvider
from scribeline.exceptions import ConfigurationError, InputError, RemoteTranscriptionError
from scribeline.media import DurationProvider, FfprobeDurationProvider
from scribeline.models import DirectoryModelResolver, ModelResolver
from scribeline.progress import NullProgressReporter, ProgressReporter
from scribeline.transcribe.local import TRANSCRIPTION_STEP, LocalTranscriptionRunner
from scribeline.transcribe.remote import RemoteTranscriptionClient, synthetic_progress
from scribeline.transcript import Transcript, load_transcript, save_transcript

REMOTE_FALLBACK_WARNING = "Error using remote Whisper server. Falling back to local processing."


class JobState(enum.Enum):
    NOT_STARTED = "not_started"
    REMOTE_OK = "remote_ok"
    REMOTE_FAILED = "remote_failed"
    LOCAL_RUNNING = "local_running"
    DONE = "done"


def output_base_path(output_path: Path) -> Path:
    """Strip the extension; whisper.cpp appends its own suffix."""
    return output_path.with_suffix("")


def transcript_json_path(output_base: Path) -> Path:
    return output_base.with_name(f"{output_base.name}.json")


class TranscriptionOrchestrator:
    """Run one transcription job at a time.

    All collaborators are injected; nothing is looked up globally.
    """

    def __init__(
        self,
        config_provider: ConfigProvider,
        progress: ProgressReporter,
        duration_provider: DurationProvider,
        model_resolver: ModelResolver,
        remote_client: RemoteTranscriptionClient,
        local_runner: LocalTranscriptionRunner,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config_provider = config_provider
        self.progress = progress
        self.duration_provider = duration_provider
        self.model_resolver = model_resolver
        self.remote_client = remote_client
        self.local_runner = local_runner
        self.logger = logger or logging.getLogger(__name__)
        self.state = JobState.NOT_STARTED

    async def transcribe(
        self,
        input_path: Path,
        output_path: Path,
        model_id: str,
        use_remote: bool,
    ) -> Transcript:
        """Transcribe an audio file.

        The transcript is written to ``<output_path without extension>.json``
        and returned.

        Args:
            input_path: Audio file to transcribe
            output_path: Where the transcript goes; the extension is replaced by .json
            model_id: Whisper model identifier
            use_remote: Try the remote Whisper server first

        Returns:
            The transcript

        Raises:
            InputError: If the audio has no positive duration
            ConfigurationError: If remote is requested but not configured
            ProcessExecutionError: If the local whisper.cpp run fails
        """
        self.state = JobState.NOT_STARTED
        self.progress.set_step(TRANSCRIPTION_STEP)

        output_base = output_base_path(output_path)
        duration_ms = await self.duration_provider.get_duration(input_path)
        if duration_ms <= 0:
            raise InputError(f"Audio file {input_path} has no duration ({duration_ms}ms)")

        if use_remote:
            transcript = await self._try_remote(input_path, output_base, model_id)
            if transcript is not None:
                self.state = JobState.DONE
                return transcript

        settings = self.config_provider.get_settings().whisper
        self.state = JobState.LOCAL_RUNNING
        await self.local_runner.run(
            input_path=input_path,
            output_base=output_base,
            model_path=self.model_resolver.get_model_path(model_id),
            settings=settings,
            total_duration_ms=duration_ms,
        )

        transcript = load_transcript(transcript_json_path(output_base))
        self.state = JobState.DONE
        return transcript

    async def _try_remote(
        self, input_path: Path, output_base: Path, model_id: str
    ) -> Transcript | None:
        config = self.config_provider.get_settings()
        if config.remote_whisper is None:
            raise ConfigurationError("Remote Whisper configuration is missing")

        try:
            audio = input_path.read_bytes()
        except OSError as e:
            raise InputError(f"Could not read audio file {input_path}: {e}") from e

        try:
            transcript = await self.remote_client.send(
                audio, config.remote_whisper, config.whisper, model=model_id
            )
        except RemoteTranscriptionError as e:
            self.state = JobState.REMOTE_FAILED
            self.logger.error("Error using remote Whisper server: %s", e)
            self.logger.info("Falling back to local Whisper processing")
            self.progress.set_error(TRANSCRIPTION_STEP, REMOTE_FALLBACK_WARNING)
            return None

        self.state = JobState.REMOTE_OK
        for fraction in synthetic_progress(transcript):
            self.progress.set_progress(TRANSCRIPTION_STEP, fraction)

        save_transcript(transcript_json_path(output_base), transcript)
        return transcript


def create_orchestrator(
    config_path: Path,
    progress: ProgressReporter | None = None,
) -> TranscriptionOrchestrator:
    """Build an orchestrator with the default ffprobe/whisper.cpp/httpx collaborators.

    The config file is read once here to locate the executable and the models
    directory, and again at the start of each job.
    """
    provider = YamlConfigProvider(config_path)
    config = provider.get_settings()
    progress = progress or NullProgressReporter()
    return TranscriptionOrchestrator(
        config_provider=provider,
        progress=progress,
        duration_provider=FfprobeDurationProvider(),
        model_resolver=DirectoryModelResolver(config.models_dir),
        remote_client=RemoteTranscriptionClient(),
        local_runner=LocalTranscriptionRunner(config.whisper_executable, progress),
    )
