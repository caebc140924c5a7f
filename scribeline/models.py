"""
scribeline.models - Whisper model path resolution.

Model files follow whisper.cpp's ``ggml-<name>.bin`` naming. Downloading and
managing them is left to the user.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ModelResolver(Protocol):
    def get_model_path(self, model_id: str) -> Path: ...


class DirectoryModelResolver:
    """Resolve model identifiers to files inside a models directory."""

    def __init__(self, models_dir: Path) -> None:
        self.models_dir = models_dir

    def get_model_path(self, model_id: str) -> Path:
        candidate = Path(model_id)
        if candidate.suffix == ".bin":
            return candidate if candidate.is_absolute() else self.models_dir / candidate
        return self.models_dir / f"ggml-{model_id}.bin"
