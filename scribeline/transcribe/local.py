"""
scribeline.transcribe.local - whisper.cpp process runner.

Builds the whisper.cpp command line from TranscriptionSettings, runs the
process, and turns the segment ranges it prints on stdout into progress.
The transcript itself is the JSON file whisper.cpp writes next to the
output base path.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import Path

from scribeline.config import TranscriptionSettings
from scribeline.exceptions import InputError, ProcessExecutionError
from scribeline.progress import ProgressReporter
from scribeline.utils import parse_timestamp_ms

logger = logging.getLogger(__name__)

TRANSCRIPTION_STEP = "transcription"

SEGMENT_RANGE_RE = re.compile(r"\[\d{2}:\d{2}:\d{2}\.\d{3} --> (\d{2}:\d{2}:\d{2}\.\d{3})\]")

# (settings field, whisper.cpp flag), in command-line order
SETTING_FLAGS: list[tuple[str, str]] = [
    ("threads", "-t"),
    ("processors", "-p"),
    ("max_context", "-mc"),
    ("max_len", "-ml"),
    ("split_on_word", "-sow"),
    ("best_of", "-bo"),
    ("beam_size", "-bs"),
    ("audio_ctx", "-ac"),
    ("word_thold", "-wt"),
    ("entropy_thold", "-et"),
    ("logprob_thold", "-lpt"),
    ("translate", "-tr"),
    ("diarize", "-di"),
    ("no_fallback", "-nf"),
    ("language", "-l"),
]

ProcessLauncher = Callable[[str, list[str]], Awaitable[asyncio.subprocess.Process]]


def build_args(
    input_path: Path,
    output_base: Path,
    model_path: Path,
    settings: TranscriptionSettings,
) -> list[str]:
    """Build the whisper.cpp argument list.

    True booleans become bare flags; None and False are left out so the
    engine uses its own defaults; everything else is a flag/value pair.
    """
    args = [str(input_path)]
    for field_name, flag in SETTING_FLAGS:
        value = getattr(settings, field_name)
        if value is None or value is False:
            continue
        if value is True:
            args.append(flag)
        else:
            args.extend([flag, str(value)])
    args.extend(["-oj", "-of", str(output_base), "-m", str(model_path)])
    return args


class LineBuffer:
    """Reassemble complete lines from arbitrarily split byte chunks."""

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._partial = ""

    def feed(self, chunk: bytes) -> list[str]:
        data = self._partial + self._decoder.decode(chunk)
        lines = data.split("\n")
        self._partial = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        rest = self._partial + self._decoder.decode(b"", final=True)
        self._partial = ""
        return [rest.rstrip("\r")] if rest else []


def parse_progress(line: str, total_duration_ms: float) -> float | None:
    """Progress fraction from the end time of the first segment range in a line.

    Returns None when the line has no range or the end time is not positive.
    """
    match = SEGMENT_RANGE_RE.search(line)
    if not match:
        return None
    end_ms = parse_timestamp_ms(match.group(1))
    if end_ms <= 0:
        return None
    return end_ms / total_duration_ms


async def launch_process(executable: str, args: list[str]) -> asyncio.subprocess.Process:
    return await asyncio.create_subprocess_exec(
        executable,
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )


class LocalTranscriptionRunner:
    """Run whisper.cpp for one job and report progress from its stdout."""

    def __init__(
        self,
        executable: str,
        progress: ProgressReporter,
        launcher: ProcessLauncher = launch_process,
        read_size: int = 4096,
    ) -> None:
        self.executable = executable
        self.progress = progress
        self.launcher = launcher
        self.read_size = read_size

    async def run(
        self,
        input_path: Path,
        output_base: Path,
        model_path: Path,
        settings: TranscriptionSettings,
        total_duration_ms: float,
    ) -> None:
        """Run whisper.cpp to completion.

        Args:
            input_path: Audio file to transcribe
            output_base: Output path without extension; whisper.cpp appends .json
            model_path: ggml model file
            settings: Whisper settings turned into command-line flags
            total_duration_ms: Audio duration, the denominator for progress

        Raises:
            InputError: If total_duration_ms is not positive
            ProcessExecutionError: If the process cannot start or exits non-zero
        """
        if total_duration_ms <= 0:
            raise InputError(f"Audio duration must be positive, got {total_duration_ms}ms")

        args = build_args(input_path, output_base, model_path, settings)
        logger.info("Processing audio file %s %s", self.executable, " ".join(args))

        try:
            process = await self.launcher(self.executable, args)
        except OSError as e:
            raise ProcessExecutionError(f"Failed to start {self.executable}: {e}") from e

        stderr_task = asyncio.create_task(_drain(process.stderr))
        try:
            await self._consume_stdout(process.stdout, total_duration_ms)
        except BaseException:
            await _terminate(process, stderr_task)
            raise
        stderr = await stderr_task
        returncode = await process.wait()

        if returncode != 0:
            tail = stderr.decode(errors="replace").strip()[-2000:]
            raise ProcessExecutionError(
                f"{self.executable} exited with code {returncode}: {tail}",
                returncode=returncode,
            )
        logger.info("Processed audio file %s", input_path)

    async def _consume_stdout(
        self, stdout: asyncio.StreamReader | None, total_duration_ms: float
    ) -> None:
        if stdout is None:
            return
        buffer = LineBuffer()
        while True:
            chunk = await stdout.read(self.read_size)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                self._report(line, total_duration_ms)
        for line in buffer.flush():
            self._report(line, total_duration_ms)

    def _report(self, line: str, total_duration_ms: float) -> None:
        fraction = parse_progress(line, total_duration_ms)
        if fraction is not None:
            self.progress.set_progress(TRANSCRIPTION_STEP, fraction)


async def _terminate(process: asyncio.subprocess.Process, stderr_task: asyncio.Task) -> None:
    """Kill and reap the process, then stop draining its stderr."""
    try:
        process.kill()
    except ProcessLookupError:
        pass
    await process.wait()
    stderr_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await stderr_task


async def _drain(stream: asyncio.StreamReader | None) -> bytes:
    if stream is None:
        return b""
    return await stream.read()
