"""Golem Agent - a planner-routed WhatsApp assistant."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("golem-agent")
except PackageNotFoundError:
    __version__ = "0.3.0"

__logo__ = "🗿"
__brand__ = "golem-agent"
