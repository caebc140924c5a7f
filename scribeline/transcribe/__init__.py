"""
scribeline.transcribe - Transcription strategies and orchestration.

Remote: one HTTP request to a Whisper server. Local: a whisper.cpp process
whose stdout drives progress. The orchestrator tries remote first when asked
and falls back to local once.
"""

from __future__ import annotations
