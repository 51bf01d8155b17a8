"""Time-window selection of chat history and timestamp recovery."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from loguru import logger

from golem_agent.agent.planner import TimeRange
from golem_agent.channels.base import BaseChannel, ChatMessage
from golem_agent.utils.helpers import from_epoch, to_iso, utc_now

NOW_LITERAL = "now"

_RELATIVE_RE = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*(minute|min|hour|hr|day|week)s?\s+ago\s*$",
    re.IGNORECASE,
)
_UNIT_SECONDS = {
    "minute": 60,
    "min": 60,
    "hour": 3600,
    "hr": 3600,
    "day": 86400,
    "week": 7 * 86400,
}


def parse_time_bound(value: Any) -> datetime | None:
    """
    Parse a planner bound into an aware datetime.

    Accepts epoch seconds (numbers or numeric strings) and ISO-8601
    strings, with or without a trailing ``Z``. Naive values are UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return from_epoch(value)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(value).strip()
    if not text:
        return None
    try:
        return from_epoch(float(text))
    except (OverflowError, OSError, ValueError):
        pass

    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_relative_start(value: Any, now: datetime) -> datetime | None:
    """Resolve ``"<n> <unit>s ago"`` literals."""
    match = _RELATIVE_RE.match(str(value or ""))
    if not match:
        return None
    amount = float(match.group(1))
    return now - timedelta(seconds=amount * _UNIT_SECONDS[match.group(2).lower()])


@dataclass(frozen=True)
class ResolvedRange:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def resolve_range(time_range: TimeRange, now: datetime, fallback_hours: float = 24.0) -> ResolvedRange | None:
    """Resolve raw bounds against ``now``; returns None when the range must be skipped."""
    raw_start = time_range.start
    if raw_start is None or (isinstance(raw_start, str) and not raw_start.strip()):
        return None

    start = parse_time_bound(raw_start)
    if start is None:
        start = parse_relative_start(raw_start, now)
    if start is None:
        if "ago" in str(raw_start).lower():
            start = now - timedelta(hours=fallback_hours)
            logger.info(f"[CTX] Fallback parsing for start time '{raw_start}': {fallback_hours:g}h ago")
        else:
            logger.info(f"[CTX] Invalid start time: {raw_start}. Skipping.")
            return None

    raw_end = time_range.end
    if raw_end is None or str(raw_end).strip().lower() in {"", NOW_LITERAL}:
        end = now
    else:
        end = parse_time_bound(raw_end)
        if end is None:
            logger.info(f"[CTX] Invalid end time: {raw_end}. Using now.")
            end = now

    return ResolvedRange(start=start, end=end)


def message_time(message: ChatMessage) -> datetime | None:
    if message.timestamp is None:
        return None
    try:
        return from_epoch(message.timestamp)
    except (OverflowError, OSError, ValueError):
        return None


def select_window(
    time_ranges: list[TimeRange],
    messages: list[ChatMessage],
    now: datetime,
    fallback_hours: float = 24.0,
    exclude_ids: set[str] | None = None,
) -> list[tuple[ChatMessage, datetime]]:
    """
    Select messages falling in any requested range.

    Ranges are applied in order and messages keep the fetch order within
    a range. A message matched by several ranges is kept once, under the
    first range that matched it. Messages without a timestamp cannot be
    tested and are left out.
    """
    added: set[str] = set(exclude_ids or ())
    selected: list[tuple[ChatMessage, datetime]] = []

    for time_range in time_ranges:
        resolved = resolve_range(time_range, now, fallback_hours)
        if resolved is None:
            continue

        logger.info(f"[CTX] Fetching range: {to_iso(resolved.start)} - {to_iso(resolved.end)}")
        for message in messages:
            when = message_time(message)
            if when is None or not resolved.contains(when):
                continue
            if message.id in added:
                continue
            added.add(message.id)
            selected.append((message, when))

    return selected


class HistoryWindowResolver:
    """Fetches one bounded history page and selects the requested windows."""

    def __init__(self, channel: BaseChannel, fetch_limit: int = 300, fallback_hours: float = 24.0):
        self.channel = channel
        self.fetch_limit = fetch_limit
        self.fallback_hours = fallback_hours

    async def resolve(
        self,
        time_ranges: list[TimeRange],
        chat_id: str,
        now: datetime | None = None,
        exclude_ids: set[str] | None = None,
    ) -> list[tuple[ChatMessage, datetime]]:
        if not time_ranges:
            logger.info("[CTX] No time ranges specified. Focused mode.")
            return []

        messages = await self.channel.fetch_recent_messages(chat_id, self.fetch_limit)
        return select_window(
            time_ranges,
            messages,
            now or utc_now(),
            fallback_hours=self.fallback_hours,
            exclude_ids=exclude_ids,
        )


class TimestampRecovery:
    """
    Recover a quoted message's timestamp.

    Tries, in order: the message's own field, the replying message's raw
    quoted-stanza metadata, a fetch by id, and a search through a larger
    history page.
    """

    def __init__(self, channel: BaseChannel, deep_search_limit: int = 100):
        self.channel = channel
        self.deep_search_limit = deep_search_limit

    async def recover(self, quoted: ChatMessage, replying: ChatMessage, chat_id: str) -> datetime | None:
        when = message_time(quoted)
        if when is not None:
            return when

        when = self._from_raw(replying)
        if when is not None:
            return when

        when = await self._from_fetch(quoted)
        if when is not None:
            return when

        when = await self._from_history(quoted, chat_id)
        if when is None:
            logger.warning(f"[CTX] Failed to recover timestamp for {quoted.id} even after deep search")
        return when

    def _from_raw(self, replying: ChatMessage) -> datetime | None:
        for key in ("quotedMsg", "quotedStanza"):
            quoted_data = replying.raw.get(key)
            if not isinstance(quoted_data, dict) or not quoted_data.get("t"):
                continue
            try:
                when = from_epoch(quoted_data["t"])
            except (TypeError, ValueError, OverflowError, OSError):
                continue
            logger.info(f"[CTX] Recovered timestamp from raw {key}: {to_iso(when)}")
            return when
        return None

    async def _from_fetch(self, quoted: ChatMessage) -> datetime | None:
        logger.warning(f"[CTX] Timestamp missing. Attempting fetch by id: {quoted.id}")
        try:
            full = await self.channel.get_message_by_id(quoted.id)
        except Exception as e:
            logger.error(f"[CTX] Failed to fetch quoted message by id: {e}")
            return None
        return message_time(full) if full is not None else None

    async def _from_history(self, quoted: ChatMessage, chat_id: str) -> datetime | None:
        try:
            history = await self.channel.fetch_recent_messages(chat_id, self.deep_search_limit)
        except Exception as e:
            logger.error(f"[CTX] Deep search for quoted message failed: {e}")
            return None
        for message in history:
            if message.id == quoted.id:
                when = message_time(message)
                if when is not None:
                    logger.info(f"[CTX] Found message in history. Recovered timestamp: {to_iso(when)}")
                return when
        return None
