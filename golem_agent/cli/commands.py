"""CLI commands for golem-agent."""

import asyncio
import json
import mimetypes
import os
import sys
from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from golem_agent import __brand__, __logo__, __version__

app = typer.Typer(
    name="golem-agent",
    help=f"{__logo__} {__brand__} - WhatsApp assistant that plans before it speaks",
    no_args_is_help=True,
)

console = Console()


def _cli_fail(cause: str, fix: str | None = None, *, exit_code: int = 1) -> None:
    """Print a consistent CLI error block and exit."""
    console.print(f"[red]{cause}[/red]")
    if fix:
        console.print(f"[dim]Fix: {fix}[/dim]")
    raise typer.Exit(exit_code)


def _configure_logging(verbose: bool) -> None:
    """Replace loguru's default sink; verbose also shows ignored-message traces."""
    logger.remove()
    logger.add(sys.stderr, level="TRACE" if verbose else "INFO")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} {__brand__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=version_callback, is_eager=True),
):
    """golem-agent - WhatsApp assistant."""
    pass


@app.command("version")
def version_command():
    """Show version."""
    console.print(f"{__logo__} {__brand__} v{__version__}")


# ============================================================================
# Setup
# ============================================================================


@app.command()
def onboard(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config file"),
):
    """Write a default config.yaml."""
    from golem_agent.config.loader import get_config_path, save_config
    from golem_agent.config.schema import Config

    config_path = get_config_path()
    if config_path.exists() and not force:
        _cli_fail(f"Config already exists at {config_path}", "Pass --force to overwrite it.")

    save_config(Config(), config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"\n{__logo__} Set XAI_API_KEY and OPENAI_API_KEY, then run [cyan]golem-agent gateway[/cyan]")


@app.command()
def status():
    """Show configuration and API key status."""
    from golem_agent.config.loader import get_config_path, get_data_dir, load_config

    data_dir = get_data_dir()
    config_path = get_config_path()
    config = load_config()

    console.print(f"{__logo__} {__brand__} Status\n")
    console.print(f"Data dir: {data_dir} {'[green]✓[/green]' if data_dir.exists() else '[red]✗[/red]'}")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[dim]defaults[/dim]'}")
    console.print(f"Triggers: {', '.join(config.bot.triggers)}")
    limits = config.bot.rate_limit
    console.print(f"Rate limit: {limits.max_requests} requests / {limits.window_hours:g}h")

    table = Table(title="Models")
    table.add_column("Role", style="cyan")
    table.add_column("Provider")
    table.add_column("Model", style="green")
    table.add_column("API key", style="yellow")
    for role in ("planner", "fast", "reasoning"):
        model_cfg = config.model_for(role)
        has_key = bool(os.environ.get(model_cfg.api_key_env_var, ""))
        table.add_row(
            role,
            model_cfg.provider,
            model_cfg.model_name,
            "[green]✓[/green]" if has_key else f"[dim]{model_cfg.api_key_env_var} not set[/dim]",
        )
    console.print(table)

    has_whisper = bool(os.environ.get(config.transcription.api_key_env_var, ""))
    console.print(
        f"Transcription: {config.transcription.model} "
        f"{'[green]✓[/green]' if has_whisper else '[dim]key not set[/dim]'}"
    )
    wa = config.channels.whatsapp
    console.print(
        f"WhatsApp bridge: {wa.bridge_url} "
        f"{'[green]enabled[/green]' if wa.enabled else '[dim]disabled[/dim]'}"
    )


# ============================================================================
# Gateway
# ============================================================================


@app.command()
def gateway(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Start the WhatsApp channel and the message pipeline."""
    from golem_agent.agent.pipeline import MessagePipeline
    from golem_agent.channels.whatsapp import WhatsAppChannel
    from golem_agent.config.loader import load_config

    _configure_logging(verbose)
    config = load_config()

    wa = config.channels.whatsapp
    if not wa.enabled:
        _cli_fail("WhatsApp channel is disabled.", "Set channels.whatsapp.enabled: true in config.yaml")

    channel = WhatsAppChannel(wa)
    try:
        pipeline = MessagePipeline.from_config(config, channel)
    except ValueError as e:
        _cli_fail(f"Could not build providers: {e}", "Check the models section of config.yaml")
    channel.set_message_handler(pipeline.handle)

    console.print(f"{__logo__} Starting {__brand__} gateway on {wa.bridge_url}...")
    console.print(f"[green]✓[/green] Triggers: {', '.join(config.bot.triggers)}")

    async def run():
        try:
            await channel.start()
        except KeyboardInterrupt:
            console.print("\nShutting down...")
        finally:
            await channel.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


# ============================================================================
# Tools
# ============================================================================


@app.command()
def transcribe(
    file: Path = typer.Argument(..., help="Audio file to transcribe"),
):
    """Transcribe an audio file and save the text next to it."""
    from golem_agent.agent.transcripts import TranscriptionCache, TranscriptionService
    from golem_agent.config.loader import load_config
    from golem_agent.errors import TranscriptionError
    from golem_agent.providers.factory import build_transcriber

    if not file.exists():
        _cli_fail(f"File not found: {file}")

    config = load_config()
    service = TranscriptionService(
        build_transcriber(config),
        TranscriptionCache(config.transcription_cache_path),
    )
    mime_type = mimetypes.guess_type(file.name)[0] or ""

    console.print(f"Reading file: {file}")
    data = file.read_bytes()
    try:
        console.print("Starting transcription...")
        text = asyncio.run(service.transcribe(str(file.resolve()), data, mime_type))
    except TranscriptionError as e:
        _cli_fail(f"Transcription failed: {e}", f"Check {config.transcription.api_key_env_var}")

    output = file.with_suffix(".txt")
    output.write_text(text, encoding="utf-8")
    console.print(f"\n[green]✓[/green] Transcription saved to: {output}\n")
    console.print(text)


@app.command()
def plan(
    message: str = typer.Argument(..., help="Message text to plan for"),
    sender: str = typer.Option("CLI", "--sender", "-s", help="Sender name passed as metadata"),
    history: str = typer.Option("", "--history", help="Immediate history line"),
):
    """Run the planner on a message and print the resulting plan."""
    from golem_agent.agent.planner import Planner, build_planner_metadata
    from golem_agent.agent.prompts import PromptSet
    from golem_agent.config.loader import load_config
    from golem_agent.providers.factory import build_provider
    from golem_agent.utils.helpers import utc_now

    config = load_config()
    planner_cfg = config.model_for("planner")
    try:
        provider = build_provider(planner_cfg)
    except ValueError as e:
        _cli_fail(str(e), "Check models.planner.provider in config.yaml")

    planner = Planner(
        provider,
        PromptSet.load(config.prompts_path).planner,
        model=planner_cfg.model_name,
        temperature=planner_cfg.temperature,
        max_tokens=planner_cfg.max_tokens,
    )
    metadata = build_planner_metadata(sender, utc_now())
    result = asyncio.run(planner.plan(message, metadata, history))
    console.print_json(json.dumps(result.to_dict(), ensure_ascii=False))


if __name__ == "__main__":
    app()
