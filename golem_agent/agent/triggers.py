"""Trigger, loop-prevention and help command classification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

DEFAULT_TRANSCRIBE_PREFIXES = ("@transcribe", "@t")
DEFAULT_HELP_PHRASES = ("@g help", "@golem help")
DEFAULT_TRANSCRIBE_INSTRUCTION = "Transcribe this audio"


class TriggerAction(str, Enum):
    IGNORE_LOOP = "ignore_loop"
    IGNORE_UNTRIGGERED = "ignore_untriggered"
    HELP = "help"
    PROCEED = "proceed"


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of classifying one inbound body."""

    action: TriggerAction
    body: str = ""
    explicit_transcription: bool = False

    @property
    def should_proceed(self) -> bool:
        return self.action is TriggerAction.PROCEED


class TriggerClassifier:
    """
    Decide whether a message is addressed to the bot.

    Order matters: the loop marker is checked before anything else so the
    bot never answers its own replies, then the help phrases, then the
    trigger words and transcription prefixes.
    """

    def __init__(
        self,
        triggers: list[str],
        loop_marker: str,
        help_phrases: list[str] | tuple[str, ...] = DEFAULT_HELP_PHRASES,
        transcribe_prefixes: list[str] | tuple[str, ...] = DEFAULT_TRANSCRIBE_PREFIXES,
    ):
        self.triggers = [t for t in triggers if t]
        self.loop_marker = loop_marker
        self.help_phrases = {p.strip().lower() for p in help_phrases if p.strip()}
        self.transcribe_prefixes = [p for p in transcribe_prefixes if p]

        # Longest first so "@golem" is removed whole before "@g" can match inside it.
        removable = sorted({*self.triggers, *self.transcribe_prefixes}, key=len, reverse=True)
        self._strip_re = (
            re.compile("|".join(re.escape(t) for t in removable), re.IGNORECASE) if removable else None
        )

    def is_loop_message(self, body: str) -> bool:
        return bool(self.loop_marker) and self.loop_marker in (body or "")

    def is_help_command(self, body: str) -> bool:
        return (body or "").strip().lower() in self.help_phrases

    def is_explicit_transcription(self, body: str) -> bool:
        text = (body or "").lstrip().lower()
        return any(text.startswith(prefix.lower()) for prefix in self.transcribe_prefixes)

    def is_triggered(self, body: str) -> bool:
        lowered = (body or "").lower()
        if any(t.lower() in lowered for t in self.triggers):
            return True
        return self.is_explicit_transcription(body)

    def clean_body(self, body: str) -> str:
        """Remove the loop marker and every trigger/prefix, then trim."""
        text = body or ""
        if self.loop_marker:
            text = text.replace(self.loop_marker, "")
        if self._strip_re is not None:
            text = self._strip_re.sub("", text)
        return text.strip()

    def classify(self, body: str) -> TriggerDecision:
        if self.is_loop_message(body):
            return TriggerDecision(TriggerAction.IGNORE_LOOP)
        if self.is_help_command(body):
            return TriggerDecision(TriggerAction.HELP)
        if not self.is_triggered(body):
            return TriggerDecision(TriggerAction.IGNORE_UNTRIGGERED)

        explicit = self.is_explicit_transcription(body)
        cleaned = self.clean_body(body)
        if explicit and not cleaned:
            cleaned = DEFAULT_TRANSCRIBE_INSTRUCTION
        return TriggerDecision(TriggerAction.PROCEED, body=cleaned, explicit_transcription=explicit)


def build_help_text(loop_marker: str) -> str:
    """Static help reply."""
    return (
        f"{loop_marker} *Golem Bot*\n\n"
        "I plan before I speak.\n"
        "- I can see images and hear audio.\n"
        "- I can filter history by 'last week', '3 days', etc.\n\n"
        "Try replying to an audio note with '@g listen'!"
    )
