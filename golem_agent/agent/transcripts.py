"""Cached audio transcription keyed by message id."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from loguru import logger

from golem_agent.errors import TranscriptionError
from golem_agent.utils.helpers import ensure_dir, truncate


class Transcriber(Protocol):
    async def transcribe(self, data: bytes, filename: str = ..., mime_type: str = ...) -> str: ...


class TranscriptionCache:
    """media id -> transcript, optionally persisted as a JSON file."""

    def __init__(self, path: Path | None = None):
        self.path = path
        self._entries: dict[str, str] = self._safe_read() if path else {}

    def _safe_read(self) -> dict[str, str]:
        try:
            if self.path is None or not self.path.exists():
                return {}
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[AUDIO] Failed to load transcription cache: {e}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _safe_write(self) -> bool:
        if self.path is None:
            return True
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            ensure_dir(self.path.parent)
            tmp_path.write_text(json.dumps(self._entries, indent=2, ensure_ascii=False), encoding="utf-8")
            tmp_path.replace(self.path)
            return True
        except OSError as e:
            logger.error(f"[AUDIO] Failed to save transcription cache: {e}")
            return False

    def get(self, media_id: str) -> str | None:
        return self._entries.get(media_id)

    def set(self, media_id: str, text: str) -> None:
        self._entries[media_id] = text
        self._safe_write()


class TranscriptionService:
    """Transcribes audio once per media id."""

    def __init__(self, provider: Transcriber, cache: TranscriptionCache | None = None):
        self.provider = provider
        self.cache = cache or TranscriptionCache()

    async def transcribe(self, media_id: str, data: bytes, mime_type: str = "") -> str:
        cached = self.cache.get(media_id)
        if cached is not None:
            logger.info(f"[AUDIO] Cache hit for {media_id}")
            return cached

        logger.info(f"[AUDIO] Transcribing {media_id}...")
        filename = f"{_safe_name(media_id)}{_extension_for(mime_type)}"
        try:
            text = await self.provider.transcribe(data, filename=filename, mime_type=mime_type)
        except TranscriptionError:
            raise
        except Exception as e:
            raise TranscriptionError(str(e)) from e

        self.cache.set(media_id, text)
        logger.info(f'[AUDIO] Transcribed {media_id}: "{truncate(text)}"')
        return text


def _safe_name(media_id: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in media_id) or "audio"


def _extension_for(mime_type: str) -> str:
    base = (mime_type or "").split(";", 1)[0].strip().lower()
    return {
        "audio/ogg": ".ogg",
        "audio/mpeg": ".mp3",
        "audio/mp4": ".m4a",
        "audio/aac": ".aac",
        "audio/wav": ".wav",
        "audio/x-wav": ".wav",
        "audio/webm": ".webm",
    }.get(base, ".ogg")
