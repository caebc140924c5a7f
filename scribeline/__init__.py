"""
Scribeline - audio transcription pipeline for whisper.cpp and remote Whisper servers.

Transcribes a recorded audio file into a time-aligned transcript, preferring a
remote Whisper service when configured and falling back to a locally spawned
whisper.cpp process when the remote call fails.
"""

__version__ = "0.1.0"
