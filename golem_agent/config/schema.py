"""Configuration schema using Pydantic."""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from golem_agent.utils.helpers import get_data_path


def _default_cache_path() -> str:
    """Default transcription cache under the active data directory."""
    return str(get_data_path() / "cache" / "transcriptions.json")


class RateLimitConfig(BaseModel):
    """Per-sender sliding window quota."""
    max_requests: int = 10
    window_hours: float = 1.0


class BotConfig(BaseModel):
    """Trigger and reply behaviour."""
    triggers: list[str] = Field(default_factory=lambda: ["@golem", "@g"])
    transcribe_prefixes: list[str] = Field(default_factory=lambda: ["@transcribe", "@t"])
    help_phrases: list[str] = Field(default_factory=lambda: ["@g help", "@golem help"])
    ignore_loop_emoji: str = "🗿"
    owner_name: str = "Owner"
    owner_ids: list[str] = Field(default_factory=list)  # Senders exempt from rate limiting
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)


class ModelConfig(BaseModel):
    """One model binding (planner or an executor tier)."""

    model_config = ConfigDict(protected_namespaces=())

    provider: str = "xai"  # xai | openai | anthropic | groq | openrouter
    model_name: str = "grok-4-1-fast-non-reasoning"
    api_key_env_var: str = "XAI_API_KEY"
    api_base: str | None = None
    temperature: float = 0.7
    max_tokens: int = 4096


class ModelsConfig(BaseModel):
    """Planner and executor tier models."""
    planner: ModelConfig = Field(default_factory=lambda: ModelConfig(temperature=0.0))
    executor_fast: ModelConfig = Field(default_factory=ModelConfig)
    executor_reasoning: ModelConfig = Field(
        default_factory=lambda: ModelConfig(model_name="grok-4-fast-reasoning")
    )


class ContextConfig(BaseModel):
    """History window and timestamp recovery limits."""
    history_fetch_limit: int = 300
    deep_search_limit: int = 100
    fallback_hours: float = 24.0
    document_extensions: list[str] = Field(default_factory=lambda: [".pdf"])
    # Quoted message types that get the high-priority reply block
    emphasis_kinds: list[str] = Field(default_factory=lambda: ["chat", "image", "video", "audio", "ptt"])


class FeaturesConfig(BaseModel):
    """Feature switches."""
    audio_transcription: bool = True
    image_analysis: bool = True


class TranscriptionConfig(BaseModel):
    """Whisper-compatible transcription endpoint."""
    api_url: str = "https://api.openai.com/v1/audio/transcriptions"
    api_key_env_var: str = "OPENAI_API_KEY"
    model: str = "whisper-1"
    timeout_seconds: float = 60.0
    cache_path: str = Field(default_factory=_default_cache_path)


class WhatsAppConfig(BaseModel):
    """WhatsApp channel configuration."""
    enabled: bool = True
    bridge_url: str = "ws://localhost:3001"
    bridge_token: str = ""
    request_timeout_seconds: float = 30.0
    reconnect_delay_seconds: float = 5.0


class ChannelsConfig(BaseModel):
    """Configuration for chat channels."""
    whatsapp: WhatsAppConfig = Field(default_factory=WhatsAppConfig)


class Config(BaseSettings):
    """Root configuration for Golem Agent."""
    bot: BotConfig = Field(default_factory=BotConfig)
    models: ModelsConfig = Field(default_factory=ModelsConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    features: FeaturesConfig = Field(default_factory=FeaturesConfig)
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    prompts_dir: str = ""  # Optional directory overriding the bundled prompts

    @property
    def prompts_path(self) -> Path | None:
        """Get expanded prompts override directory, if configured."""
        if not self.prompts_dir:
            return None
        return Path(self.prompts_dir).expanduser()

    @property
    def transcription_cache_path(self) -> Path:
        """Get expanded transcription cache path."""
        return Path(self.transcription.cache_path).expanduser()

    def model_for(self, role: str) -> ModelConfig:
        """Return the model binding for planner|fast|reasoning."""
        mapping = {
            "planner": self.models.planner,
            "fast": self.models.executor_fast,
            "reasoning": self.models.executor_reasoning,
        }
        if role not in mapping:
            raise KeyError(f"Unknown model role: {role}")
        return mapping[role]

    model_config = SettingsConfigDict(
        env_prefix="GOLEM_",
        env_nested_delimiter="__",
    )
