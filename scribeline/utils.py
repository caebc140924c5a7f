"""
scribeline.utils - Shared timestamp helpers.

whisper.cpp prints segment ranges as ``HH:MM:SS.mmm`` on stdout and writes
``HH:MM:SS,mmm`` into its JSON output; both forms are accepted here.
"""

from __future__ import annotations

import re

_TIMESTAMP_RE = re.compile(r"^(\d+):(\d{2}):(\d{2})[.,](\d{3})$")


def parse_timestamp_ms(value: str) -> int:
    """Convert an ``HH:MM:SS.mmm`` timestamp to milliseconds.

    Args:
        value: Timestamp string (``.`` or ``,`` before the milliseconds)

    Returns:
        Milliseconds from the start of the audio

    Raises:
        ValueError: If the string is not a timestamp
    """
    match = _TIMESTAMP_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid timestamp: {value!r}")
    hours, minutes, seconds, millis = (int(part) for part in match.groups())
    return ((hours * 60 + minutes) * 60 + seconds) * 1000 + millis


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS or MM:SS.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (HH:MM:SS if >= 1 hour, otherwise MM:SS)
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
