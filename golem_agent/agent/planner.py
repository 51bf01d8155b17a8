"""Planner: turns a user message into a routing Plan."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from golem_agent.providers.base import LLMProvider
from golem_agent.utils.helpers import to_iso, truncate

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class ModelTier(str, Enum):
    FAST = "fast"
    REASONING = "reasoning"


@dataclass(frozen=True)
class TimeRange:
    """Raw planner-chosen window; bounds are resolved later against the clock."""

    start: Any = None
    end: Any = None


@dataclass
class Plan:
    """Routing decision for one turn."""

    model_tier: ModelTier = ModelTier.FAST
    is_self_reflection: bool = False
    is_abuse: bool = False
    needs_image: bool = False
    needs_audio: bool = False
    time_ranges: list[TimeRange] = field(default_factory=list)
    reasoning: str = "Fallback due to parse error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "target_model": self.model_tier.value,
            "is_self_reflection": self.is_self_reflection,
            "is_abuse": self.is_abuse,
            "needs_image": self.needs_image,
            "needs_audio": self.needs_audio,
            "time_ranges": [{"start": r.start, "end": r.end} for r in self.time_ranges],
            "reasoning": self.reasoning,
        }


def default_plan() -> Plan:
    return Plan()


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw or "").strip()


def _parse_tier(value: Any) -> ModelTier:
    text = str(value or "").strip().lower()
    if text == ModelTier.REASONING.value:
        return ModelTier.REASONING
    return ModelTier.FAST


def _parse_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _parse_range(value: Any) -> TimeRange | None:
    if not isinstance(value, dict):
        return None
    return TimeRange(start=value.get("start"), end=value.get("end"))


def _parse_ranges(data: dict[str, Any]) -> list[TimeRange]:
    ranges: list[TimeRange] = []
    raw_ranges = data.get("time_ranges")
    if isinstance(raw_ranges, list):
        for item in raw_ranges:
            parsed = _parse_range(item)
            if parsed is not None:
                ranges.append(parsed)
    elif isinstance(raw_ranges, dict):
        parsed = _parse_range(raw_ranges)
        if parsed is not None:
            ranges.append(parsed)

    # Older prompt revisions emit a single "time_range" object.
    if not ranges:
        legacy = _parse_range(data.get("time_range"))
        if legacy is not None:
            ranges.append(legacy)
    return ranges


def parse_plan(raw: str) -> Plan:
    """
    Parse the planner's reply into a Plan.

    Every field falls back to its default on its own, so a partially
    valid reply keeps whatever it got right. Anything unparseable yields
    the default plan.
    """
    cleaned = strip_code_fences(raw)
    try:
        data = json.loads(cleaned)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"[PLANNER] Failed to parse plan: {truncate(raw, 500)} ({e})")
        return default_plan()

    if not isinstance(data, dict):
        logger.error(f"[PLANNER] Plan is not a JSON object: {truncate(raw, 500)}")
        return default_plan()

    reasoning = data.get("reasoning")
    return Plan(
        model_tier=_parse_tier(data.get("target_model", data.get("model_tier"))),
        is_self_reflection=_parse_bool(data.get("is_self_reflection", False)),
        is_abuse=_parse_bool(data.get("is_abuse", False)),
        needs_image=_parse_bool(data.get("needs_image", False)),
        needs_audio=_parse_bool(data.get("needs_audio", False)),
        time_ranges=_parse_ranges(data),
        reasoning=str(reasoning) if reasoning else "No reasoning provided",
    )


def build_planner_metadata(sender_name: str, now: datetime) -> str:
    return f"Sender: {sender_name}, Timestamp: {to_iso(now)}"


class Planner:
    """Calls the planner model and parses its reply."""

    def __init__(
        self,
        provider: LLMProvider,
        system_prompt: str,
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 1024,
    ):
        self.provider = provider
        self.system_prompt = system_prompt
        self.model = model or provider.get_default_model()
        self.temperature = temperature
        self.max_tokens = max_tokens

    def build_messages(self, user_message: str, metadata: str, history_context: str) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self.system_prompt},
            {
                "role": "user",
                "content": (
                    f"METADATA: {metadata}\n\n"
                    f"IMMEDIATE HISTORY:\n{history_context}\n\n"
                    f"USER MESSAGE: {user_message}"
                ),
            },
        ]

    async def plan(self, user_message: str, metadata: str, history_context: str) -> Plan:
        """Produce a Plan. Never raises; failures degrade to the default plan."""
        logger.info(f'[PLANNER] Planning for: "{truncate(user_message)}"')
        try:
            response = await self.provider.chat(
                messages=self.build_messages(user_message, metadata, history_context),
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except Exception as e:
            logger.error(f"[PLANNER] Planner call failed, using default plan: {e}")
            return default_plan()

        if response.is_error:
            logger.error(f"[PLANNER] Planner returned an error, using default plan: {response.content}")
            return default_plan()

        return parse_plan(response.content or "")
