"""Utility helpers."""

from golem_agent.utils.helpers import ensure_dir, get_data_path

__all__ = ["ensure_dir", "get_data_path"]
