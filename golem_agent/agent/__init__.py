"""Agent core module."""

from golem_agent.agent.context import ContextAssembler
from golem_agent.agent.executor import Executor
from golem_agent.agent.pipeline import MessagePipeline
from golem_agent.agent.planner import Plan, Planner
from golem_agent.agent.ratelimit import RateLimiter
from golem_agent.agent.triggers import TriggerClassifier

__all__ = [
    "ContextAssembler",
    "Executor",
    "MessagePipeline",
    "Plan",
    "Planner",
    "RateLimiter",
    "TriggerClassifier",
]
