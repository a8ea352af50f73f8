"""Vision Assistant CLI - visionassist command line tool."""

from __future__ import annotations

import asyncio
import json
import sys
from base64 import b64encode
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from visionassist import __version__
from visionassist.analysis import AnalysisClient, Description
from visionassist.config import Config, ProviderConfig, SettingsStore, load_config

app = typer.Typer(
    name="visionassist",
    help="Vision Assistant - hear what your camera sees",
    no_args_is_help=True,
)
console = Console()

MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}


def get_config(config_path: Optional[Path] = None) -> Config:
    """Get configuration."""
    return load_config(config_path)


def get_settings_store(cfg: Config) -> SettingsStore:
    return SettingsStore(cfg.settings_path, defaults=cfg.provider_config())


@app.command()
def run(
    mock: bool = typer.Option(False, "--mock", help="Use mock camera and speech"),
    config_path: Optional[Path] = typer.Option(None, "--config", help="Config file"),
):
    """Run the assistant with the terminal as the gesture surface."""
    from visionassist.app import main as run_app

    asyncio.run(run_app(mock=mock, config=get_config(config_path)))


@app.command()
def describe(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="JPEG or PNG file"),
    query: str = typer.Option("Describe what is in front of me.", "--query", "-q"),
    provider: Optional[str] = typer.Option(None, "--provider", help="gemini or openai"),
    api_key: Optional[str] = typer.Option(None, "--api-key", envvar="VISIONASSIST_API_KEY"),
    speak: bool = typer.Option(False, "--speak", help="Read the answer aloud"),
):
    """Describe a single image file."""
    cfg = get_config()
    stored = get_settings_store(cfg).load()
    settings = ProviderConfig(
        provider=provider or stored.provider,
        api_key=api_key or stored.api_key,
    )

    mime_type = MIME_TYPES.get(image.suffix.lower(), "image/jpeg")
    data_url = f"data:{mime_type};base64,{b64encode(image.read_bytes()).decode('ascii')}"

    async def _describe():
        client = AnalysisClient(cfg.analysis)
        with console.status(f"Asking {settings.provider}..."):
            result = await client.analyze(data_url, query, settings)

        if isinstance(result, Description):
            console.print(Panel(result.text, title=f"{result.provider or 'simulation'} {result.model or ''}".strip()))
            if speak:
                await _speak(cfg, result.text)
        else:
            console.print(f"[red]Error ({result.kind.value}):[/] {result.message}")
            if result.attempts:
                console.print(f"[dim]Tried: {', '.join(result.attempts)}[/]")
            sys.exit(1)

    asyncio.run(_describe())


async def _speak(cfg: Config, text: str) -> None:
    from visionassist.speech import SpeechService

    speech = SpeechService(cfg)
    await speech.start()
    try:
        speech.speak(text)
        await speech.wait()
    finally:
        await speech.stop()


@app.command()
def cameras():
    """List capture devices."""
    from visionassist.camera import CameraService

    cfg = get_config()

    async def _cameras():
        camera = CameraService(cfg)
        await camera.start()
        try:
            devices = camera.list_devices()
        finally:
            await camera.stop()

        if not devices:
            console.print("[yellow]No cameras found[/]")
            return

        table = Table(title="Cameras")
        table.add_column("Index", style="cyan")
        table.add_column("Resolution")
        table.add_column("Active")

        for device in devices:
            table.add_row(
                str(device.index),
                f"{device.width}x{device.height}",
                "✓" if device.active else "",
            )

        console.print(table)

    asyncio.run(_cameras())


@app.command()
def configure(
    provider: str = typer.Option(..., "--provider", help="gemini or openai"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True),
):
    """Save the provider and API key used by the assistant."""
    if provider not in ("gemini", "openai"):
        console.print(f"[red]Unknown provider:[/] {provider}")
        raise typer.Exit(code=1)

    cfg = get_config()
    store = get_settings_store(cfg)
    store.save(ProviderConfig(provider=provider, api_key=api_key))
    console.print(f"[green]Saved[/] {provider} settings to {store.path}")


@app.command()
def config(json_output: bool = False):
    """Show configuration."""
    cfg = get_config()
    settings = get_settings_store(cfg).load()

    if json_output:
        data = cfg.model_dump(mode="json")
        data["analysis"]["api_key"] = "***" if settings.has_credential else ""
        print(json.dumps(data, indent=2, default=str))
        return

    console.print("[bold]Configuration[/]")
    console.print(f"  Device: {cfg.device.name}")
    console.print(f"  Mode: {cfg.device.mode}")
    console.print(f"  Mock Mode: {cfg.mock_mode}")
    console.print("\n[bold]Analysis[/]")
    console.print(f"  Provider: {settings.provider}")
    console.print(f"  API Key: {'set' if settings.has_credential else '[yellow]not set (simulation mode)[/]'}")
    console.print(f"  Gemini models: {', '.join(cfg.analysis.gemini_models)}")
    console.print(f"  OpenAI model: {cfg.analysis.openai_model}")
    console.print(f"  Timeout: {cfg.analysis.timeout_seconds}s")
    console.print("\n[bold]Camera[/]")
    console.print(f"  Device: {cfg.camera.device_index}")
    console.print("\n[bold]Speech[/]")
    console.print(f"  Locale: {cfg.speech.locale}")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]Vision Assistant[/] v{__version__}")


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
