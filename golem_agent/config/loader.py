"""Configuration loading utilities."""

import json
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from loguru import logger

from golem_agent.config.schema import Config
from golem_agent.utils.helpers import ensure_dir, get_data_path

# Load .env into os.environ (won't overwrite existing env vars)
load_dotenv(override=False)


def get_config_path() -> Path:
    """Get the default configuration file path (config.yaml in the working directory)."""
    if val := os.environ.get("GOLEM_CONFIG"):
        return Path(val).expanduser()
    return Path.cwd() / "config.yaml"


def get_data_dir() -> Path:
    """Get the Golem data directory."""
    return get_data_path()


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, then apply env-var overrides.

    Priority (highest → lowest):
        1. Flat env vars (OPENAI_API_KEY, GOLEM_OWNER_NAME, ...) / .env
        2. config.yaml or config.json
        3. Built-in defaults
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            data = _read_config_file(path)
            config = Config.model_validate(convert_keys(data))
            logger.info(f"[CONFIG] Loaded configuration from {path}")
        except (json.JSONDecodeError, yaml.YAMLError, ValueError) as e:
            logger.warning(f"[CONFIG] Failed to load config from {path}, using defaults: {e}")
            config = Config()
    else:
        logger.info("[CONFIG] No config file found, using defaults.")
        config = Config()

    _apply_env_overrides(config)
    return config


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON config file into a dict."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config root must be a mapping, got {type(data).__name__}")
    return data


def _apply_env_overrides(config: Config) -> None:
    """Apply flat GOLEM_* env vars on top of the loaded config."""

    # --- Bot ---
    if val := os.environ.get("GOLEM_OWNER_NAME"):
        config.bot.owner_name = val
    if val := os.environ.get("GOLEM_OWNER_IDS"):
        config.bot.owner_ids = [v.strip() for v in val.split(",") if v.strip()]
    if val := os.environ.get("GOLEM_TRIGGERS"):
        config.bot.triggers = [v.strip() for v in val.split(",") if v.strip()]

    # --- Models ---
    if val := os.environ.get("GROK_MODEL_FAST"):
        config.models.executor_fast.model_name = val
    if val := os.environ.get("GROK_MODEL_REASONING"):
        config.models.executor_reasoning.model_name = val

    # --- WhatsApp bridge ---
    if val := os.environ.get("GOLEM_WHATSAPP_BRIDGE_URL"):
        config.channels.whatsapp.bridge_url = val
    if val := os.environ.get("GOLEM_WHATSAPP_BRIDGE_TOKEN"):
        config.channels.whatsapp.bridge_token = val

    # --- Misc ---
    if val := os.environ.get("GOLEM_PROMPTS_DIR"):
        config.prompts_dir = val


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file as camelCase YAML.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    ensure_dir(path.parent)

    data = convert_to_camel(config.model_dump())

    with open(path, "w", encoding="utf-8") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2, ensure_ascii=False)
        else:
            yaml.safe_dump(data, f, allow_unicode=True, sort_keys=False)


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
