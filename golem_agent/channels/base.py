"""Base channel interface for chat transports."""

import base64
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger


class MessageKind(str, Enum):
    """Transport message types the pipeline distinguishes."""

    TEXT = "chat"
    IMAGE = "image"
    AUDIO = "audio"
    VOICE = "ptt"
    DOCUMENT = "document"
    VIDEO = "video"
    STICKER = "sticker"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any) -> "MessageKind":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {"text": cls.TEXT, "voice": cls.VOICE}
        if text in aliases:
            return aliases[text]
        for kind in cls:
            if kind.value == text:
                return kind
        return cls.OTHER

    @property
    def is_audio(self) -> bool:
        return self in (MessageKind.AUDIO, MessageKind.VOICE)


@dataclass
class ChatMessage:
    """A message as delivered by the transport. Treated as read-only."""

    id: str
    chat_id: str
    sender: str
    body: str = ""
    timestamp: float | None = None  # Epoch seconds; often missing on quoted messages
    kind: MessageKind = MessageKind.TEXT
    has_media: bool = False
    from_self: bool = False
    quoted_id: str | None = None
    filename: str = ""
    sender_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)  # Transport-internal metadata

    @property
    def has_quoted(self) -> bool:
        return bool(self.quoted_id)


@dataclass
class MediaPayload:
    """Downloaded media bytes."""

    data: bytes
    mime_type: str
    filename: str = ""

    @classmethod
    def from_base64(cls, data: str, mime_type: str, filename: str = "") -> "MediaPayload":
        return cls(data=base64.b64decode(data), mime_type=mime_type, filename=filename)


MessageHandler = Callable[[ChatMessage], Awaitable[None]]


class BaseChannel(ABC):
    """
    Abstract base class for chat transports.

    The pipeline only talks to this interface, so tests can drive it with
    an in-memory fake and the WhatsApp bridge can be swapped for another
    transport.
    """

    name: str = "base"

    def __init__(self, config: Any):
        """
        Initialize the channel.

        Args:
            config: Channel-specific configuration.
        """
        self.config = config
        self._running = False
        self._handler: MessageHandler | None = None

    def set_message_handler(self, handler: MessageHandler) -> None:
        """Register the coroutine invoked for every inbound message."""
        self._handler = handler

    @abstractmethod
    async def start(self) -> None:
        """Connect and begin forwarding messages to the handler."""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop the channel and clean up resources."""
        pass

    @abstractmethod
    async def fetch_recent_messages(self, chat_id: str, limit: int) -> list[ChatMessage]:
        """Return up to ``limit`` most recent messages of a chat, oldest first."""
        pass

    @abstractmethod
    async def get_quoted_message(self, message: ChatMessage) -> ChatMessage | None:
        """Return the message that ``message`` replies to."""
        pass

    @abstractmethod
    async def get_message_by_id(self, message_id: str) -> ChatMessage | None:
        """Fetch a single message from the live transport."""
        pass

    @abstractmethod
    async def download_media(self, message: ChatMessage) -> MediaPayload | None:
        """Download the media attached to ``message``."""
        pass

    @abstractmethod
    async def reply(self, message: ChatMessage, text: str) -> None:
        """Send ``text`` as a reply to ``message``."""
        pass

    @abstractmethod
    async def _lookup_sender_name(self, message: ChatMessage) -> str | None:
        """Look up the contact name or push name of the sender."""
        pass

    def get_chat_id(self, message: ChatMessage) -> str:
        return message.chat_id

    async def resolve_sender_name(self, message: ChatMessage) -> str:
        """
        Resolve a display name for the sender.

        Prefers the contact name, then the push name, then the raw sender id.
        Lookup failures never propagate.
        """
        try:
            name = await self._lookup_sender_name(message)
        except Exception as e:
            logger.debug(f"Sender name lookup failed for {message.sender}: {e}")
            name = None
        return name or message.sender_name or message.sender

    async def _handle_message(self, message: ChatMessage) -> None:
        """Forward an inbound message to the registered handler."""
        if self._handler is None:
            logger.warning(f"No handler registered on channel {self.name}; dropping {message.id}")
            return
        await self._handler(message)

    @property
    def is_running(self) -> bool:
        """Check if the channel is running."""
        return self._running
