"""LiteLLM provider implementation for multi-provider support."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from golem_agent.providers.base import LLMProvider, LLMResponse

# Config provider name -> LiteLLM model prefix
_PROVIDER_PREFIXES: dict[str, str] = {
    "xai": "xai",
    "grok": "xai",
    "openai": "openai",
    "anthropic": "anthropic",
    "groq": "groq",
    "openrouter": "openrouter",
    "gemini": "gemini",
}


class LiteLLMProvider(LLMProvider):
    """
    LLM provider using LiteLLM for multi-provider support.

    Supports xAI (Grok), OpenAI, Anthropic, Groq, OpenRouter and Gemini
    through a unified interface.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "",
        provider_name: str | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.provider_name = (provider_name or "").strip().lower()

        # Disable LiteLLM logging noise
        litellm.suppress_debug_info = True
        # Drop unsupported parameters for providers
        litellm.drop_params = True

    def _resolve_model(self, model: str) -> str:
        """Apply the provider's LiteLLM prefix to a bare model name."""
        prefix = _PROVIDER_PREFIXES.get(self.provider_name, "")
        if not prefix or model.startswith(f"{prefix}/"):
            return model
        if self.provider_name == "openrouter" or "/" not in model:
            return f"{prefix}/{model}"
        return model

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        Send a chat completion request via LiteLLM.

        Errors are logged and returned as an LLMResponse with
        finish_reason "error" rather than raised.
        """
        model = self._resolve_model(model or self.default_model)

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        try:
            response = await acompletion(**kwargs)
            return self._parse_response(response, resolved_model=model)
        except Exception as e:
            logger.error(f"LLM call failed ({model}): {e}")
            return LLMResponse(
                content=f"Error calling LLM: {e}",
                finish_reason="error",
                model=model,
            )

    def _parse_response(self, response: Any, *, resolved_model: str = "") -> LLMResponse:
        """Parse LiteLLM response into our standard format."""
        choice = response.choices[0]
        message = choice.message

        usage = {}
        if hasattr(response, "usage") and response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
            model=resolved_model or getattr(response, "model", ""),
        )

    def get_default_model(self) -> str:
        """Get the default model."""
        return self.default_model
