import asyncio
from datetime import datetime, timezone

from golem_agent.agent.planner import (
    ModelTier,
    Plan,
    Planner,
    TimeRange,
    build_planner_metadata,
    parse_plan,
)
from golem_agent.providers.base import LLMResponse

from fakes import FakeProvider


def test_non_json_reply_yields_default_plan():
    plan = parse_plan("Sure! I think we should use the fast model.")

    assert plan == Plan()
    assert plan.model_tier is ModelTier.FAST
    assert plan.time_ranges == []
    assert plan.reasoning == "Fallback due to parse error"


def test_fenced_json_is_parsed():
    raw = """```json
    {"target_model": "reasoning", "is_abuse": true, "needs_image": true,
     "time_ranges": [{"start": "2 hours ago", "end": "now"}],
     "reasoning": "needs analysis"}
    ```"""
    plan = parse_plan(raw)

    assert plan.model_tier is ModelTier.REASONING
    assert plan.is_abuse is True
    assert plan.needs_image is True
    assert plan.needs_audio is False
    assert plan.time_ranges == [TimeRange(start="2 hours ago", end="now")]
    assert plan.reasoning == "needs analysis"


def test_fields_default_independently():
    plan = parse_plan('{"target_model": "turbo", "needs_audio": true}')

    assert plan.model_tier is ModelTier.FAST
    assert plan.needs_audio is True
    assert plan.is_self_reflection is False
    assert plan.reasoning == "No reasoning provided"


def test_legacy_single_time_range_is_accepted():
    plan = parse_plan('{"model_tier": "reasoning", "time_range": {"start": "2024-01-01T00:00:00Z", "end": null}}')

    assert plan.model_tier is ModelTier.REASONING
    assert plan.time_ranges == [TimeRange(start="2024-01-01T00:00:00Z", end=None)]


def test_non_object_json_falls_back_entirely():
    assert parse_plan("[1, 2, 3]") == Plan()
    assert parse_plan("") == Plan()


def test_metadata_format():
    now = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert build_planner_metadata("Alice", now) == "Sender: Alice, Timestamp: 2024-05-01T12:30:00.000Z"


def test_planner_sends_system_and_user_message():
    provider = FakeProvider(['{"target_model": "fast", "reasoning": "simple"}'])
    planner = Planner(provider, "PLANNER PROMPT", model="planner-model")

    plan = asyncio.run(planner.plan("hi there", "Sender: A, Timestamp: T", "[Bob]: hello"))

    assert plan.reasoning == "simple"
    call = provider.calls[0]
    assert call["model"] == "planner-model"
    assert call["temperature"] == 0.0
    assert call["messages"][0] == {"role": "system", "content": "PLANNER PROMPT"}
    assert call["messages"][1]["content"] == (
        "METADATA: Sender: A, Timestamp: T\n\nIMMEDIATE HISTORY:\n[Bob]: hello\n\nUSER MESSAGE: hi there"
    )


def test_planner_degrades_on_provider_failure():
    raising = Planner(FakeProvider([RuntimeError("boom")]), "prompt")
    erroring = Planner(FakeProvider([LLMResponse(content="Error calling LLM", finish_reason="error")]), "prompt")

    assert asyncio.run(raising.plan("q", "m", "h")) == Plan()
    assert asyncio.run(erroring.plan("q", "m", "h")) == Plan()
