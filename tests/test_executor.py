import asyncio

import pytest

from golem_agent.agent.content import TextUnit
from golem_agent.agent.executor import ABUSE_FALLBACK, Executor, TierBinding, extract_persona
from golem_agent.agent.planner import ModelTier, Plan
from golem_agent.agent.prompts import PromptSet
from golem_agent.errors import GenerationError
from golem_agent.providers.base import LLMResponse

from fakes import FakeProvider

TEMPLATE = "intro\n[STANDARD_PERSONA]\nBe helpful.\n[ABUSE_PERSONA]\nBe curt.\n"


def _executor(fast: FakeProvider, reasoning: FakeProvider | None = None) -> Executor:
    tiers = {ModelTier.FAST: TierBinding(fast, model="fast-model", temperature=0.7)}
    if reasoning is not None:
        tiers[ModelTier.REASONING] = TierBinding(reasoning, model="deep-model", temperature=0.2, max_tokens=2048)
    return Executor(tiers, TEMPLATE, "TECH STACK")


def test_persona_extraction():
    assert extract_persona(TEMPLATE, abusive=False) == "Be helpful."
    assert extract_persona(TEMPLATE, abusive=True) == "Be curt."
    assert extract_persona("Only a standard prompt", abusive=False) == "Only a standard prompt"
    assert extract_persona("[STANDARD_PERSONA] Nice.", abusive=True) == ABUSE_FALLBACK


def test_self_reflection_appends_tech_stack():
    executor = _executor(FakeProvider())

    assert executor.build_system_prompt(Plan()) == "Be helpful."
    assert executor.build_system_prompt(Plan(is_self_reflection=True)) == "Be helpful.\n\nTECH STACK"


def test_reasoning_tier_routes_to_its_provider():
    fast, reasoning = FakeProvider(["quick"]), FakeProvider(["deep answer"])
    executor = _executor(fast, reasoning)
    units = [TextUnit("[Alice] (t): hi"), TextUnit("[CURRENT_QUERY] why?", source_id="cur")]

    reply = asyncio.run(executor.execute(Plan(model_tier=ModelTier.REASONING), units))

    assert reply == "deep answer"
    assert fast.calls == []
    call = reasoning.calls[0]
    assert call["model"] == "deep-model"
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 2048
    assert call["messages"][0] == {"role": "system", "content": "Be helpful."}
    assert call["messages"][-1] == {"role": "user", "content": "[CURRENT_QUERY] why?"}
    assert len(call["messages"]) == 3


def test_missing_reasoning_tier_falls_back_to_fast():
    fast = FakeProvider(["quick"])

    reply = asyncio.run(_executor(fast).execute(Plan(model_tier=ModelTier.REASONING), [TextUnit("q")]))

    assert reply == "quick"


def test_generation_failures_raise():
    raising = _executor(FakeProvider([RuntimeError("timeout")]))
    erroring = _executor(FakeProvider([LLMResponse(content="Error calling LLM: 500", finish_reason="error")]))
    empty = _executor(FakeProvider([LLMResponse(content=None)]))

    for executor in (raising, erroring, empty):
        with pytest.raises(GenerationError):
            asyncio.run(executor.execute(Plan(), [TextUnit("q")]))


def test_bundled_prompts_have_both_personas():
    prompts = PromptSet.load()

    assert "[STANDARD_PERSONA]" in prompts.executor
    assert "[ABUSE_PERSONA]" in prompts.executor
    assert "time_ranges" in prompts.planner
    assert prompts.tech_stack.strip()


def test_prompt_override_directory(tmp_path):
    (tmp_path / "executor.md").write_text("[STANDARD_PERSONA]\ncustom", encoding="utf-8")

    prompts = PromptSet.load(tmp_path)

    assert prompts.executor == "[STANDARD_PERSONA]\ncustom"
    assert "time_ranges" in prompts.planner
