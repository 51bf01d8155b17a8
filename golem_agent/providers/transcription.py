"""Voice transcription provider using a Whisper-compatible HTTP API."""

import mimetypes
import os

import httpx
from loguru import logger

from golem_agent.errors import TranscriptionError


class WhisperTranscriptionProvider:
    """
    Voice transcription provider for OpenAI-compatible transcription endpoints.

    Defaults to OpenAI's whisper-1; pointing ``api_url`` at Groq's
    ``/openai/v1/audio/transcriptions`` works the same way.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str = "https://api.openai.com/v1/audio/transcriptions",
        model: str = "whisper-1",
        timeout: float = 60.0,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.api_url = api_url
        self.model = os.environ.get("GOLEM_TRANSCRIPTION_MODEL", model)
        self.timeout = timeout

    async def transcribe(self, data: bytes, filename: str = "audio.ogg", mime_type: str = "") -> str:
        """
        Transcribe raw audio bytes.

        Args:
            data: Audio payload.
            filename: Name sent with the multipart upload; the API uses its extension.
            mime_type: Optional content type of the payload.

        Returns:
            Transcribed text.

        Raises:
            TranscriptionError: when the key is missing or the request fails.
        """
        if not self.api_key:
            raise TranscriptionError("Transcription API key not configured")
        if not data:
            raise TranscriptionError("Empty audio payload")

        content_type = mime_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            async with httpx.AsyncClient() as client:
                files = {
                    "file": (filename, data, content_type),
                    "model": (None, self.model),
                }
                headers = {
                    "Authorization": f"Bearer {self.api_key}",
                }

                response = await client.post(
                    self.api_url, headers=headers, files=files, timeout=self.timeout
                )

                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"[AUDIO] Transcription request failed: {e}")
            raise TranscriptionError(str(e)) from e

        if isinstance(payload, dict):
            return str(payload.get("text", "") or "")
        return ""
