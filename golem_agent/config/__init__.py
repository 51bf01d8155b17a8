"""Configuration module for Golem Agent."""

from golem_agent.config.loader import get_config_path, load_config
from golem_agent.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]
