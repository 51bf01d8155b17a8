"""Speaker-attributed content units fed to the generation model."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class Origin(str, Enum):
    """Who produced the source message."""

    HUMAN = "human"
    ASSISTANT = "assistant"

    @classmethod
    def for_message(cls, from_self: bool) -> "Origin":
        return cls.ASSISTANT if from_self else cls.HUMAN

    @property
    def role(self) -> str:
        return "assistant" if self is Origin.ASSISTANT else "user"


@dataclass(frozen=True)
class TextUnit:
    """Plain text context."""

    text: str
    origin: Origin = Origin.HUMAN
    source_id: str | None = None

    def to_message(self) -> dict[str, Any]:
        return {"role": self.origin.role, "content": self.text}


@dataclass(frozen=True)
class MultimodalUnit:
    """Text plus one binary attachment (image or document)."""

    text: str
    data: bytes
    mime_type: str
    origin: Origin = Origin.HUMAN
    source_id: str | None = None

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{base64.b64encode(self.data).decode()}"

    def to_message(self) -> dict[str, Any]:
        return {
            "role": self.origin.role,
            "content": [
                {"type": "text", "text": self.text},
                {"type": "image_url", "image_url": {"url": self.data_url}},
            ],
        }


ContentUnit = Union[TextUnit, MultimodalUnit]


def to_messages(units: list[ContentUnit]) -> list[dict[str, Any]]:
    """Render units into provider chat messages."""
    return [unit.to_message() for unit in units]
