"""
scribeline.transcribe.remote - Remote Whisper server client.

Posts the whole audio file to a configured server in one request and maps
the returned segments into a Transcript. The response is validated before
any segment is touched.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from collections.abc import Iterator
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from scribeline.config import RemoteTranscriptionConfig, TranscriptionSettings
from scribeline.exceptions import RemoteResponseError, RemoteTranscriptionError
from scribeline.transcript import Transcript, TranscriptItem

logger = logging.getLogger(__name__)


class RemoteSegment(BaseModel):
    start: float | str
    end: float | str
    start_offset: int | float
    end_offset: int | float
    text: str
    speaker: str | None = None


class RemoteResponse(BaseModel):
    language: str
    segments: list[RemoteSegment]


def build_options(settings: TranscriptionSettings, model: str | None = None) -> dict[str, Any]:
    """Serialize settings into the server's camelCase options object."""
    return {
        "task": "translate" if settings.translate else "transcribe",
        "model": model or settings.model,
        "language": settings.language,
        "threads": settings.threads,
        "processors": settings.processors,
        "maxContext": settings.max_context,
        "maxLen": settings.max_len,
        "splitOnWord": settings.split_on_word,
        "bestOf": settings.best_of,
        "beamSize": settings.beam_size,
        "audioCtx": settings.audio_ctx,
        "wordThold": settings.word_thold,
        "entropyThold": settings.entropy_thold,
        "logprobThold": settings.logprob_thold,
        "translate": settings.translate,
        "diarize": settings.diarize,
        "noFallback": settings.no_fallback,
    }


def build_headers(remote_config: RemoteTranscriptionConfig, content_type: str) -> dict[str, str]:
    headers = {"Content-Type": content_type}
    if remote_config.auth_token:
        headers["Authorization"] = f"Bearer {remote_config.auth_token}"
    return headers


def segment_to_item(segment: RemoteSegment) -> TranscriptItem:
    return TranscriptItem.model_validate(
        {
            "timestamps": {"from": segment.start, "to": segment.end},
            "offsets": {"from": segment.start_offset, "to": segment.end_offset},
            "text": segment.text,
            "speaker": segment.speaker,
        }
    )


def parse_response(body: Any) -> Transcript:
    """Validate a server response body and convert it to a Transcript.

    Raises:
        RemoteResponseError: If the body lacks a language or a valid segment list
    """
    try:
        response = RemoteResponse.model_validate(body)
    except ValidationError as e:
        raise RemoteResponseError(f"Malformed response from remote Whisper server: {e}") from e

    return Transcript(
        language=response.language,
        items=tuple(segment_to_item(segment) for segment in response.segments),
    )


def synthetic_progress(transcript: Transcript) -> Iterator[float]:
    """Yield one progress fraction per item, in transcript order.

    The remote result arrives all at once, so progress is replayed from the
    item offsets after the fact.
    """
    max_offset = transcript.max_offset()
    for item in transcript.items:
        if max_offset > 0:
            yield item.offsets.to / max_offset
        else:
            yield 1.0


class RemoteTranscriptionClient:
    """Client for a remote Whisper transcription server."""

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._transport = transport

    def _client(self, remote_config: RemoteTranscriptionConfig) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(remote_config.timeout / 1000),
            transport=self._transport,
        )

    async def send(
        self,
        audio: bytes,
        remote_config: RemoteTranscriptionConfig,
        settings: TranscriptionSettings,
        model: str | None = None,
    ) -> Transcript:
        """Send audio to the remote server and return the parsed transcript.

        Args:
            audio: Raw audio file contents
            remote_config: Server URL, auth token and timeout
            settings: Whisper settings forwarded as request options
            model: Model identifier overriding settings.model

        Returns:
            Transcript built from the response segments

        Raises:
            RemoteTranscriptionError: On connection failure, timeout, or non-2xx status
            RemoteResponseError: If the response body is malformed
        """
        payload = {
            "audio": base64.b64encode(audio).decode("ascii"),
            "options": build_options(settings, model),
        }
        headers = build_headers(remote_config, "application/json")

        logger.info(
            "Sending %d bytes to remote Whisper server %s", len(audio), remote_config.server_url
        )

        async def post() -> httpx.Response:
            async with self._client(remote_config) as client:
                response = await client.post(
                    remote_config.server_url, json=payload, headers=headers
                )
                response.raise_for_status()
                return response

        # httpx timeouts are per read/write; the configured timeout bounds the whole request
        try:
            response = await asyncio.wait_for(post(), remote_config.timeout / 1000)
        except asyncio.TimeoutError as e:
            raise RemoteTranscriptionError(
                f"Remote Whisper server timed out after {remote_config.timeout}ms"
            ) from e
        except httpx.TimeoutException as e:
            raise RemoteTranscriptionError(
                f"Remote Whisper server timed out after {remote_config.timeout}ms: {e}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise RemoteTranscriptionError(
                f"Remote Whisper server error: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise RemoteTranscriptionError(f"Remote Whisper server error: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteResponseError(f"Remote Whisper server returned invalid JSON: {e}") from e

        transcript = parse_response(body)
        logger.info(
            "Remote Whisper server returned %d segments (%s)",
            len(transcript.items),
            transcript.language,
        )
        return transcript

    async def test_connection(self, remote_config: RemoteTranscriptionConfig) -> bool:
        """Check that the server accepts requests.

        Sends an empty audio body; any HTTP response counts as reachable and
        True is returned only for 200.

        Raises:
            RemoteTranscriptionError: If the server cannot be reached
        """
        headers = build_headers(remote_config, "audio/wav")
        try:
            async with self._client(remote_config) as client:
                response = await client.post(remote_config.server_url, content=b"", headers=headers)
        except httpx.HTTPError as e:
            raise RemoteTranscriptionError(f"Remote Whisper server error: {e}") from e
        return response.status_code == 200
