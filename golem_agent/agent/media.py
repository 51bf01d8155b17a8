"""Normalize transport messages (text, image, audio, document) into content units."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from loguru import logger

from golem_agent.agent.content import ContentUnit, MultimodalUnit, Origin, TextUnit
from golem_agent.agent.planner import Plan
from golem_agent.agent.transcripts import TranscriptionService
from golem_agent.channels.base import BaseChannel, ChatMessage, MediaPayload, MessageKind
from golem_agent.errors import TranscriptionError
from golem_agent.utils.helpers import to_iso

AUDIO_TRANSCRIPTION_TAG = "[AUDIO TRANSCRIPTION]"
AUDIO_FAILED_TAG = "[Audio Transcription Failed]"
AUDIO_MESSAGE_TAG = "[Audio Message]"
IMAGE_FAILED_TAG = "[Image Download Failed]"
IMAGE_OMITTED_TAG = "[IMAGE OMITTED: Placeholder]"
IMAGE_SENT_TAG = "[IMAGE SENT]"
DOCUMENT_FAILED_TAG = "[Document Download Failed]"
PDF_MIME = "application/pdf"

_AUDIO_KEYWORDS = ("transcribe", "listen")


@dataclass
class CurrentMedia:
    """What the current (or quoted) message's media contributes to the turn."""

    prefix_units: list[ContentUnit] = field(default_factory=list)
    query_override: ContentUnit | None = None
    annotation: str = ""


def wants_audio(plan: Plan, explicit_transcription: bool, cleaned_body: str) -> bool:
    """Whether audio should be downloaded and transcribed this turn."""
    if plan.needs_audio or explicit_transcription:
        return True
    lowered = (cleaned_body or "").lower()
    return any(word in lowered for word in _AUDIO_KEYWORDS)


class MediaNormalizer:
    """
    Turns messages into content units.

    Media failures never propagate: the affected unit carries a failure
    tag instead, so the rest of the context can still be assembled.
    """

    def __init__(
        self,
        channel: BaseChannel,
        transcripts: TranscriptionService | None,
        clean: Callable[[str], str],
        owner_name: str = "Owner",
        document_extensions: list[str] | tuple[str, ...] = (".pdf",),
        audio_enabled: bool = True,
        images_enabled: bool = True,
    ):
        self.channel = channel
        self.transcripts = transcripts
        self.clean = clean
        self.owner_name = owner_name
        self.document_extensions = tuple(ext.lower() for ext in document_extensions)
        self.audio_enabled = audio_enabled and transcripts is not None
        self.images_enabled = images_enabled

    async def sender_label(self, message: ChatMessage) -> str:
        if message.from_self:
            return self.owner_name
        return await self.channel.resolve_sender_name(message)

    async def _download(self, message: ChatMessage) -> tuple[MediaPayload | None, bool]:
        """Return (payload, failed). A None payload without failure means nothing was returned."""
        try:
            return await self.channel.download_media(message), False
        except Exception as e:
            logger.warning(f"[CTX] Media download failed for {message.id}: {e}")
            return None, True

    async def transcribe(self, message: ChatMessage) -> str:
        """Download and transcribe an audio message; returns the tagged line."""
        payload, failed = await self._download(message)
        if failed or payload is None or self.transcripts is None:
            return AUDIO_FAILED_TAG
        try:
            text = await self.transcripts.transcribe(message.id, payload.data, payload.mime_type)
        except TranscriptionError as e:
            logger.warning(f"[AUDIO] Transcription failed for {message.id}: {e}")
            return AUDIO_FAILED_TAG
        return f"{AUDIO_TRANSCRIPTION_TAG}: {text}"

    def is_document(self, message: ChatMessage) -> bool:
        if message.kind is not MessageKind.DOCUMENT:
            return False
        name = (message.filename or message.body or "").strip().lower()
        return bool(self.document_extensions) and name.endswith(self.document_extensions)

    async def normalize_current(
        self,
        target: ChatMessage,
        plan: Plan,
        cleaned_body: str,
        audio_wanted: bool,
    ) -> CurrentMedia:
        """Media of the current message, or of the quoted message when replying."""
        result = CurrentMedia()
        if not target.has_media:
            return result

        if target.kind.is_audio:
            if not (audio_wanted and self.audio_enabled):
                return result
            logger.info(f"[CTX] Downloading audio from msg {target.id}...")
            origin = Origin.for_message(target.from_self)
            result.prefix_units.append(TextUnit(await self.transcribe(target), origin=origin))
            return result

        if self.is_document(target):
            logger.info(f"[CTX] Downloading document from msg {target.id}...")
            payload, failed = await self._download(target)
            if payload is not None and payload.mime_type == PDF_MIME:
                result.query_override = MultimodalUnit(cleaned_body, payload.data, payload.mime_type)
                logger.info(f"[CTX] PDF attached as multimodal content. Size: {len(payload.data)} bytes.")
            elif failed:
                result.annotation = DOCUMENT_FAILED_TAG
            return result

        if target.kind is MessageKind.IMAGE and plan.needs_image and self.images_enabled:
            logger.info(f"[CTX] Downloading image from msg {target.id}...")
            payload, failed = await self._download(target)
            if payload is not None:
                result.query_override = MultimodalUnit(cleaned_body, payload.data, payload.mime_type)
                logger.info(f"[CTX] Image attached. MIME: {payload.mime_type}, Size: {len(payload.data)} bytes.")
            else:
                result.annotation = IMAGE_FAILED_TAG if failed else IMAGE_OMITTED_TAG
        return result

    async def normalize_history(
        self, message: ChatMessage, when: datetime, audio_wanted: bool
    ) -> ContentUnit | None:
        """One historical message as a speaker-attributed unit; None when it is skipped."""
        if message.has_media and message.kind.is_audio and not (audio_wanted and self.audio_enabled):
            return None

        sender = await self.sender_label(message)
        body = self.clean(message.body)
        origin = Origin.for_message(message.from_self)
        header = f"[{sender}] ({to_iso(when)}):"
        extra = ""

        if message.has_media and message.kind.is_audio:
            extra = f"\n{await self.transcribe(message)}"

        elif message.has_media and message.kind is MessageKind.IMAGE:
            if not self.images_enabled:
                extra = f"\n{IMAGE_OMITTED_TAG}"
            else:
                payload, failed = await self._download(message)
                if payload is not None:
                    return MultimodalUnit(
                        f"{header} {IMAGE_SENT_TAG} {body}".rstrip(),
                        payload.data,
                        payload.mime_type,
                        origin=origin,
                        source_id=message.id,
                    )
                extra = f"\n{IMAGE_FAILED_TAG if failed else IMAGE_OMITTED_TAG}"

        text = f"{header} {body}".rstrip() + extra
        return TextUnit(text, origin=origin, source_id=message.id)
