"""Chat transport channels."""

from golem_agent.channels.base import BaseChannel, ChatMessage, MediaPayload, MessageKind

__all__ = ["BaseChannel", "ChatMessage", "MediaPayload", "MessageKind"]
