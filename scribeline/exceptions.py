"""
scribeline.exceptions - Custom exception classes.

All Scribeline-specific exceptions inherit from ScribelineError.
"""


class ScribelineError(Exception):
    """Base exception for all Scribeline errors."""

    pass


class ConfigurationError(ScribelineError):
    """Configuration missing, unreadable, or invalid."""

    pass


class InputError(ScribelineError):
    """Input audio is missing, unreadable, or has no duration."""

    pass


class TranscriptionError(ScribelineError):
    """Transcription error."""

    pass


class RemoteTranscriptionError(TranscriptionError):
    """Remote Whisper server failed: connection, timeout, HTTP status, or body."""

    pass


class RemoteResponseError(RemoteTranscriptionError):
    """Remote Whisper server returned a malformed or unexpected response."""

    pass


class ProcessExecutionError(TranscriptionError):
    """Local whisper.cpp process could not be started or exited non-zero."""

    def __init__(self, message: str, returncode: int | None = None):
        self.returncode = returncode
        super().__init__(message)


class DependencyError(ScribelineError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")
