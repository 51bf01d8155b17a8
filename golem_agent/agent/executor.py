"""Executor: persona selection and the final generation call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from golem_agent.agent.content import ContentUnit, to_messages
from golem_agent.agent.planner import ModelTier, Plan
from golem_agent.errors import GenerationError
from golem_agent.providers.base import LLMProvider

STANDARD_MARKER = "[STANDARD_PERSONA]"
ABUSE_MARKER = "[ABUSE_PERSONA]"
ABUSE_FALLBACK = "You are currently in abuse mode. Be snarky and dismissive."


@dataclass
class TierBinding:
    """Provider and call parameters for one executor tier."""

    provider: LLMProvider
    model: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4096


def extract_persona(template: str, abusive: bool) -> str:
    """
    Pick the persona section out of the executor template.

    The standard persona is the text after the standard marker up to the
    abuse marker; the whole template counts when the marker is missing.
    """
    if abusive:
        parts = template.split(ABUSE_MARKER, 1)
        return parts[1].strip() if len(parts) > 1 else ABUSE_FALLBACK

    parts = template.split(STANDARD_MARKER, 1)
    after_standard = parts[1] if len(parts) > 1 else template
    return after_standard.split(ABUSE_MARKER, 1)[0].strip()


class Executor:
    """Routes a planned turn to the selected tier and returns the reply text."""

    def __init__(self, tiers: dict[ModelTier, TierBinding], executor_prompt: str, tech_stack_prompt: str = ""):
        if ModelTier.FAST not in tiers:
            raise ValueError("Executor needs at least the fast tier")
        self.tiers = tiers
        self.executor_prompt = executor_prompt
        self.tech_stack_prompt = tech_stack_prompt

    def build_system_prompt(self, plan: Plan) -> str:
        persona = extract_persona(self.executor_prompt, plan.is_abuse)
        if plan.is_self_reflection and self.tech_stack_prompt:
            persona += f"\n\n{self.tech_stack_prompt}"
        return persona

    def binding_for(self, plan: Plan) -> TierBinding:
        return self.tiers.get(plan.model_tier) or self.tiers[ModelTier.FAST]

    def build_messages(self, plan: Plan, units: list[ContentUnit]) -> list[dict[str, Any]]:
        return [{"role": "system", "content": self.build_system_prompt(plan)}, *to_messages(units)]

    async def execute(self, plan: Plan, units: list[ContentUnit]) -> str:
        binding = self.binding_for(plan)
        model = binding.model or binding.provider.get_default_model()
        logger.info(f"[EXECUTOR] Selected Model: {model} (Reason: {plan.model_tier.value})")

        messages = self.build_messages(plan, units)
        logger.info(f"[EXECUTOR] Executing with {len(units)} context units...")
        try:
            response = await binding.provider.chat(
                messages=messages,
                model=model,
                max_tokens=binding.max_tokens,
                temperature=binding.temperature,
            )
        except Exception as e:
            raise GenerationError(f"Generation call failed: {e}") from e

        if response.is_error:
            raise GenerationError(response.content or "Generation returned an error")
        if not response.content:
            raise GenerationError("Generation returned an empty reply")
        return response.content
