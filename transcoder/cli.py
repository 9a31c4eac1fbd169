"""
Command-line interface for the transcode pipeline.

Runs the provider chain locally, lists the configured providers, or starts
the development API server.
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from shared.models import AcquisitionRequest
from . import config
from .chain import FallbackChain
from .errors import AllProvidersFailed, InvalidInput
from .identifiers import normalize_identifier
from .media import filename_extension
from .providers import PROVIDER_NAMES, PROVIDER_REGISTRY, default_providers

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@click.group()
@click.version_option(version=config.VERSION)
@click.option('-v', '--verbose', is_flag=True, help='Show debug logging')
def cli(verbose):
    """
    🎵 YouTube audio transcoder

    Fetch audio for a video id through an ordered chain of download strategies.
    """
    _configure_logging(verbose)


@cli.command()
@click.argument('video_id')
@click.option('-o', '--output', type=click.Path(dir_okay=False, path_type=Path),
              help='Output file (default: <video_id>.<ext> in the current directory)')
@click.option('--provider', 'providers', multiple=True, type=click.Choice(PROVIDER_NAMES),
              help='Only use these providers (repeatable); order stays canonical')
def fetch(video_id, output, providers):
    """
    Download audio for VIDEO_ID (or a YouTube URL).
    """
    try:
        identifier = normalize_identifier(video_id)
    except InvalidInput as e:
        console.print(f"[red]Error: {e}[/red]")
        raise SystemExit(2)

    chain = FallbackChain(default_providers(providers or None))
    request = AcquisitionRequest(identifier=identifier)
    console.print(f"[cyan]Fetching[/cyan] {identifier} via {' -> '.join(chain.names)}")

    try:
        result = chain.run(request)
    except AllProvidersFailed as e:
        table = Table(show_header=True, header_style="bold red", title="All download methods failed")
        table.add_column("#", style="dim", width=3)
        table.add_column("Provider", style="cyan")
        table.add_column("Error")
        for i, failure in enumerate(e.failures, 1):
            table.add_row(str(i), failure.label or failure.provider_name, failure.message)
        console.print(table)
        raise SystemExit(1)

    target = output or Path(f"{identifier}.{filename_extension(result.media_type)}")
    target.write_bytes(result.payload)

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Provider", result.provider or "?")
    table.add_row("Media type", result.media_type)
    table.add_row("Size", f"{result.size:,} bytes")
    table.add_row("Saved to", str(target))
    console.print(table)


@cli.command(name='providers')
def list_providers():
    """List the provider chain in fallback order."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Order", style="cyan", width=6)
    table.add_column("Name", style="green")
    table.add_column("Label")
    table.add_column("Import path", style="dim")
    for i, (name, label, target) in enumerate(PROVIDER_REGISTRY, 1):
        table.add_row(str(i), name, label, target)
    console.print(table)


@cli.command()
@click.option('--host', default=config.API_HOST, help='Interface to bind')
@click.option('--port', default=config.API_PORT, help='Port to run the API on')
@click.option('--debug/--no-debug', default=False, help='Run in debug mode')
def serve(host, port, debug):
    """
    Start the API with Flask's development server.

    For production use run.py, which serves through gevent.
    """
    from shared.api import app, get_handler

    handler = get_handler()
    console.print(f"[green]Serving on http://{host}:{port}/api/transcode?videoId=...[/green]")
    console.print(f"Max concurrent: {handler.gate.max_concurrent}  Chain: {' -> '.join(handler.chain.names)}")
    app.run(host=host, port=port, debug=debug, use_reloader=False, threaded=True)


if __name__ == '__main__':
    cli()
