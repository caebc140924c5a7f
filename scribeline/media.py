"""
scribeline.media - Audio duration probing via ffprobe.

The duration is the denominator for local progress, so it is resolved before
any transcription strategy runs.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from scribeline.exceptions import DependencyError, InputError

logger = logging.getLogger(__name__)


class DurationProvider(Protocol):
    async def get_duration(self, path: Path) -> float: ...


class FfprobeDurationProvider:
    """Read container duration with ``ffprobe -show_format``."""

    def __init__(self, ffprobe: str = "ffprobe") -> None:
        self.ffprobe = ffprobe

    async def get_duration(self, path: Path) -> float:
        """Return the duration of an audio file in milliseconds.

        Raises:
            InputError: If the file is missing or ffprobe cannot read it
            DependencyError: If ffprobe is not installed
        """
        if not path.exists():
            raise InputError(f"Audio file not found: {path}")

        cmd = [
            self.ffprobe,
            "-v",
            "quiet",
            "-print_format",
            "json",
            "-show_format",
            str(path),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise DependencyError(
                "ffprobe", "not found on PATH", install_hint="Install FFmpeg"
            ) from e

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            raise InputError(
                f"ffprobe failed for {path}: {stderr.decode(errors='replace').strip()}"
            )

        return parse_ffprobe_duration(stdout.decode(errors="replace"), path)


def parse_ffprobe_duration(output: str, path: Path) -> float:
    """Extract ``format.duration`` (seconds) from ffprobe JSON as milliseconds."""
    try:
        data = json.loads(output)
        duration = float(data.get("format", {}).get("duration", 0))
    except (ValueError, AttributeError) as e:
        raise InputError(f"Could not read duration of {path}: {e}") from e

    logger.debug("Duration of %s: %.3fs", path, duration)
    return duration * 1000
