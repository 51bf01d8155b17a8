"""Provider factory helpers."""

from __future__ import annotations

import os

from loguru import logger

from golem_agent.config.schema import Config, ModelConfig
from golem_agent.providers.base import LLMProvider
from golem_agent.providers.litellm_provider import LiteLLMProvider
from golem_agent.providers.transcription import WhisperTranscriptionProvider

SUPPORTED_PROVIDERS = {"xai", "grok", "openai", "anthropic", "groq", "openrouter", "gemini"}


def build_provider(model_cfg: ModelConfig) -> LLMProvider:
    """Build the runtime provider for one model binding."""
    provider_name = (model_cfg.provider or "").strip().lower()
    if provider_name not in SUPPORTED_PROVIDERS:
        raise ValueError(f"Unsupported LLM provider: {model_cfg.provider}")

    api_key = os.environ.get(model_cfg.api_key_env_var, "") if model_cfg.api_key_env_var else ""
    if not api_key:
        logger.warning(
            f"[LLMFactory] Missing API key for env var: {model_cfg.api_key_env_var}. "
            "Model calls may fail."
        )

    return LiteLLMProvider(
        api_key=api_key or None,
        api_base=model_cfg.api_base,
        default_model=model_cfg.model_name,
        provider_name=provider_name,
    )


def build_tier_providers(config: Config) -> dict[str, LLMProvider]:
    """Build providers for the planner and both executor tiers."""
    return {role: build_provider(config.model_for(role)) for role in ("planner", "fast", "reasoning")}


def build_transcriber(config: Config) -> WhisperTranscriptionProvider:
    """Build the transcription provider from the transcription section."""
    cfg = config.transcription
    return WhisperTranscriptionProvider(
        api_key=os.environ.get(cfg.api_key_env_var, "") or None,
        api_url=cfg.api_url,
        model=cfg.model,
        timeout=cfg.timeout_seconds,
    )
