"""LLM and transcription provider module."""

from golem_agent.providers.base import LLMProvider, LLMResponse
from golem_agent.providers.factory import build_provider, build_tier_providers, build_transcriber
from golem_agent.providers.litellm_provider import LiteLLMProvider
from golem_agent.providers.transcription import WhisperTranscriptionProvider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "LiteLLMProvider",
    "WhisperTranscriptionProvider",
    "build_provider",
    "build_tier_providers",
    "build_transcriber",
]
