"""Prompt templates shipped with the package, overridable from a directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

BUNDLED_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

PLANNER_FILE = "planner.md"
EXECUTOR_FILE = "executor.md"
TECH_STACK_FILE = "tech_stack.md"


def load_prompt(name: str, override_dir: Path | None = None) -> str:
    """Read a prompt, preferring ``override_dir/name`` over the bundled copy."""
    if override_dir is not None:
        path = override_dir / name
        if path.is_file():
            logger.debug(f"Using prompt override: {path}")
            return path.read_text(encoding="utf-8")
    return (BUNDLED_PROMPTS_DIR / name).read_text(encoding="utf-8")


@dataclass
class PromptSet:
    planner: str
    executor: str
    tech_stack: str

    @classmethod
    def load(cls, override_dir: Path | None = None) -> "PromptSet":
        return cls(
            planner=load_prompt(PLANNER_FILE, override_dir),
            executor=load_prompt(EXECUTOR_FILE, override_dir),
            tech_stack=load_prompt(TECH_STACK_FILE, override_dir),
        )
