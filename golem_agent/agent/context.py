"""Context assembler for the generation call."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import datetime

from loguru import logger

from golem_agent.agent.content import ContentUnit, MultimodalUnit, Origin, TextUnit
from golem_agent.agent.media import AUDIO_MESSAGE_TAG, MediaNormalizer, wants_audio
from golem_agent.agent.planner import Plan
from golem_agent.agent.window import HistoryWindowResolver, TimestampRecovery
from golem_agent.channels.base import BaseChannel, ChatMessage, MessageKind
from golem_agent.utils.helpers import to_iso, truncate

CURRENT_QUERY_TAG = "[CURRENT_QUERY]"

DEFAULT_EMPHASIS_KINDS = frozenset(
    {MessageKind.TEXT, MessageKind.IMAGE, MessageKind.VIDEO, MessageKind.AUDIO, MessageKind.VOICE}
)


def build_reply_emphasis(sender: str, body: str) -> str:
    return (
        "\nIMPORTANT: CAREFULLY READ THIS.\n"
        "The user is specifically REPLYING to the following message.\n"
        "This message is the MOST critical context. Ignorance of this message constitutes a failure.\n"
        "[REPLIED_TO_MESSAGE]\n"
        f"From: {sender}\n"
        f'Content: "{body}"\n'
        "[END_REPLIED_TO_MESSAGE]\n"
    )


class ContextAssembler:
    """
    Builds the ordered content units for one turn.

    The order is fixed and reflects attention priority: broad history
    first, then the message being replied to, then exactly one unit with
    the current query at the end.
    """

    def __init__(
        self,
        channel: BaseChannel,
        normalizer: MediaNormalizer,
        window: HistoryWindowResolver,
        recovery: TimestampRecovery,
        clean: Callable[[str], str],
        emphasis_kinds: Iterable[MessageKind | str] = DEFAULT_EMPHASIS_KINDS,
    ):
        self.channel = channel
        self.normalizer = normalizer
        self.window = window
        self.recovery = recovery
        self.clean = clean
        self.emphasis_kinds = frozenset(MessageKind.parse(kind) for kind in emphasis_kinds)

    async def build_planner_context(self, message: ChatMessage, chat_id: str) -> str:
        """Short immediate context for the planner: the quoted message, or the latest chat line."""
        if message.has_quoted:
            quoted = await self.channel.get_quoted_message(message)
            if quoted is not None:
                when = await self.recovery.recover(quoted, message, chat_id)
                stamp = to_iso(when) if when is not None else "Unknown"
                sender = await self.normalizer.sender_label(quoted)
                audio = f" {AUDIO_MESSAGE_TAG}" if quoted.kind.is_audio else ""
                return f"[USER_REPLY_TO_MESSAGE] [{sender}] (Timestamp: {stamp}): {self.clean(quoted.body)}{audio}"

        recent = await self.channel.fetch_recent_messages(chat_id, 1)
        lines = []
        for item in recent:
            sender = await self.normalizer.sender_label(item)
            audio = f" {AUDIO_MESSAGE_TAG}" if item.kind.is_audio else ""
            lines.append(f"[{sender}]: {self.clean(item.body)}{audio}")
        return "\n".join(lines)

    async def assemble(
        self,
        message: ChatMessage,
        chat_id: str,
        plan: Plan,
        cleaned_body: str,
        explicit_transcription: bool = False,
        now: datetime | None = None,
    ) -> list[ContentUnit]:
        units: list[ContentUnit] = []
        audio_wanted = wants_audio(plan, explicit_transcription, cleaned_body)

        quoted = await self.channel.get_quoted_message(message) if message.has_quoted else None
        target = quoted or message

        # 1. Current (or quoted) message media
        media = await self.normalizer.normalize_current(target, plan, cleaned_body, audio_wanted)
        units.extend(media.prefix_units)

        # 2. Historical windows; the current and quoted messages have their own units
        exclude = {message.id} | ({quoted.id} if quoted is not None else set())
        history = await self.window.resolve(plan.time_ranges, chat_id, now=now, exclude_ids=exclude)
        added = 0
        for item, when in history:
            unit = await self.normalizer.normalize_history(item, when, audio_wanted)
            if unit is not None:
                units.append(unit)
                added += 1
        if added:
            logger.info(f"[CTX] Added {added} historical messages")

        # 3. The replied-to message, right before the query
        if quoted is not None and quoted.kind in self.emphasis_kinds:
            sender = await self.normalizer.sender_label(quoted)
            quoted_body = self.clean(quoted.body)
            units.append(
                TextUnit(build_reply_emphasis(sender, quoted_body), origin=Origin.HUMAN, source_id=quoted.id)
            )
            logger.info(f'[CTX] Added quoted message (high priority): "{truncate(quoted_body, 50)}"')

        # 4. Exactly one trailing query unit
        units.append(self._query_unit(message, cleaned_body, media.query_override, media.annotation))
        return units

    def _query_unit(
        self,
        message: ChatMessage,
        cleaned_body: str,
        override: ContentUnit | None,
        annotation: str,
    ) -> ContentUnit:
        if isinstance(override, MultimodalUnit):
            return MultimodalUnit(
                override.text,
                override.data,
                override.mime_type,
                origin=Origin.HUMAN,
                source_id=message.id,
            )
        text = f"{CURRENT_QUERY_TAG} {cleaned_body}"
        if annotation:
            text = f"{text}\n{annotation}"
        return TextUnit(text, origin=Origin.HUMAN, source_id=message.id)
