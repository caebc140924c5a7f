"""
scribeline.cli - Typer CLI entry point.

Provides the init, transcribe and test-remote subcommands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console

from scribeline import __version__
from scribeline.config import (
    CONFIG_FILENAME,
    create_default_config,
    find_config_file,
    load_config,
    write_config,
)
from scribeline.exceptions import ScribelineError
from scribeline.logging import configure_logging
from scribeline.utils import format_duration

app = typer.Typer(
    name="scribeline",
    help="Transcribe audio with whisper.cpp or a remote Whisper server.\n\n"
    "Remote transcription falls back to the local engine when the server fails.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"scribeline {__version__}")
        raise typer.Exit()


def resolve_config(config: str | None) -> Path:
    """Use --config when given, otherwise search upwards from the cwd."""
    if config:
        return Path(config)
    found = find_config_file()
    if not found:
        console.print(f"[red]Error: No {CONFIG_FILENAME} found[/red]")
        console.print("[dim]Run 'scribeline init' first or pass --config[/dim]")
        raise typer.Exit(1)
    return found


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Scribeline - audio transcription with remote fallback."""
    configure_logging(verbose)


@app.command("init")
def init_config(
    path: str = typer.Option(".", "--path", "-d", help="Directory to write the config into"),
    model: str = typer.Option("base", "--model", "-m", help="Default Whisper model"),
    language: str = typer.Option("auto", "--language", "-l", help="Spoken language or 'auto'"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing config"),
) -> None:
    """Write a default scribeline.yaml."""
    config_path = Path(path) / CONFIG_FILENAME

    if config_path.exists() and not force:
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(model, language), config_path)
    console.print(f"[green]✓[/green] Wrote {config_path}")
    console.print("\nNext steps:")
    console.print(f"  Place ggml-{model}.bin in the models directory")
    console.print("  scribeline transcribe <audio_file>")


@app.command("transcribe")
def transcribe(
    audio: str = typer.Argument(..., help="Audio file to transcribe"),
    output: str | None = typer.Option(
        None, "--output", "-o", help="Transcript path (default: next to the audio file)"
    ),
    model: str | None = typer.Option(
        None, "--model", "-m", help="Whisper model (default: whisper.model from config)"
    ),
    remote: bool | None = typer.Option(
        None,
        "--remote/--local",
        help="Use the remote Whisper server (default: use_remote_whisper from config)",
    ),
    config: str | None = typer.Option(None, "--config", "-c", help="Path to scribeline.yaml"),
) -> None:
    """Transcribe an audio file to whisper.cpp-style JSON."""
    from scribeline.progress import ConsoleProgressReporter
    from scribeline.transcribe.engine import create_orchestrator

    config_path = resolve_config(config)
    audio_path = Path(audio)
    output_path = Path(output) if output else audio_path.with_suffix(".json")

    try:
        settings = load_config(config_path)
        model_id = model or settings.whisper.model
        use_remote = settings.use_remote_whisper if remote is None else remote

        strategy = "remote Whisper server" if use_remote else "whisper.cpp"
        console.print(
            f"[cyan]Transcribing {audio_path.name} with {strategy} ({model_id})...[/cyan]"
        )

        with ConsoleProgressReporter(console) as progress:
            orchestrator = create_orchestrator(config_path, progress)
            transcript = asyncio.run(
                orchestrator.transcribe(audio_path, output_path, model_id, use_remote)
            )
    except ScribelineError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    duration = format_duration(transcript.max_offset() / 1000) if transcript.items else "0:00"
    console.print(
        f"\n[green]✓[/green] {len(transcript.items)} segments, {duration}, "
        f"language {transcript.language}"
    )


@app.command("test-remote")
def test_remote(
    config: str | None = typer.Option(None, "--config", "-c", help="Path to scribeline.yaml"),
) -> None:
    """Check the connection to the configured remote Whisper server."""
    from scribeline.transcribe.remote import RemoteTranscriptionClient

    config_path = resolve_config(config)

    try:
        settings = load_config(config_path)
        if settings.remote_whisper is None:
            console.print("[red]Error: Remote Whisper configuration is missing[/red]")
            raise typer.Exit(1)
        ok = asyncio.run(RemoteTranscriptionClient().test_connection(settings.remote_whisper))
    except ScribelineError as e:
        console.print(f"[red]Connection to remote Whisper server failed: {e}[/red]")
        raise typer.Exit(1)

    if not ok:
        console.print("[yellow]Remote Whisper server responded, but not with HTTP 200[/yellow]")
        raise typer.Exit(1)
    console.print("[green]✓[/green] Connection to remote Whisper server successful")
