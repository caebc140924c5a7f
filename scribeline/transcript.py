"""
scribeline.transcript - Transcript data model.

A Transcript is the language code plus the recognized segments in the order
the engine produced them. The on-disk form is whisper.cpp's ``-oj`` JSON:

    {"result": {"language": "en"},
     "transcription": [{"timestamps": {"from": ..., "to": ...},
                        "offsets": {"from": ..., "to": ...},
                        "text": "...", "speaker": "..."}]}

Both strategies produce this shape, so downstream steps only read one format.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scribeline.exceptions import TranscriptionError
from scribeline.io import read_json, write_json


class TimestampRange(BaseModel):
    """Wall-clock span: seconds from a remote server, HH:MM:SS,mmm from whisper.cpp."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: float | str = Field(alias="from")
    to: float | str


class OffsetRange(BaseModel):
    """Offset span into the audio (milliseconds for whisper.cpp)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: int | float = Field(alias="from")
    to: int | float


class TranscriptItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamps: TimestampRange
    offsets: OffsetRange
    text: str
    speaker: str | None = None


class Transcript(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str
    items: tuple[TranscriptItem, ...] = ()

    @property
    def text(self) -> str:
        return " ".join(item.text.strip() for item in self.items if item.text.strip())

    def max_offset(self) -> float:
        """Largest end offset across all items, 0 when empty."""
        return max((item.offsets.to for item in self.items), default=0)

    def to_whisper_json(self) -> dict[str, Any]:
        return {
            "result": {"language": self.language},
            "transcription": [
                item.model_dump(by_alias=True, exclude_none=True) for item in self.items
            ],
        }

    @classmethod
    def from_whisper_json(cls, data: dict[str, Any]) -> Transcript:
        """Build a Transcript from whisper.cpp's JSON output.

        Raises:
            TranscriptionError: If the document does not have the expected shape
        """
        try:
            language = data.get("result", {}).get("language", "unknown")
            items = tuple(
                TranscriptItem.model_validate(raw) for raw in data.get("transcription", [])
            )
        except (AttributeError, ValidationError) as e:
            raise TranscriptionError(f"Malformed whisper.cpp transcript: {e}") from e
        return cls(language=language, items=items)


def load_transcript(path: Path) -> Transcript:
    """Load a whisper.cpp JSON transcript from disk.

    Raises:
        TranscriptionError: If the file is missing or malformed
    """
    try:
        data = read_json(path)
    except FileNotFoundError as e:
        raise TranscriptionError(f"Transcript file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise TranscriptionError(f"Transcript file is not valid JSON: {path}: {e}") from e
    return Transcript.from_whisper_json(data)


def save_transcript(path: Path, transcript: Transcript) -> None:
    write_json(path, transcript.to_whisper_json())
