"""
Command-line interface for Audio Studio.
"""

import json
import socket
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from .infrastructure.config.settings import load_config
from .infrastructure.monitoring.logging import configure_logging, get_logger
from .services.artifacts import ArtifactStore

logger = get_logger(__name__)

app = typer.Typer(help="Audio Studio: prompt-driven audio generation with a local gallery")
console = Console()


def find_free_port(host: str, start: int, end: int) -> int:
    """Return the first port in [start, end] that can be bound on ``host``."""
    for port in range(start, end + 1):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                continue
            return port
    raise RuntimeError(f"No free port between {start} and {end}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: first free in range)"),
    port_start: Optional[int] = typer.Option(None, "--port-start", help="First port tried when --port is not given"),
    port_end: Optional[int] = typer.Option(None, "--port-end", help="Last port tried when --port is not given"),
    config_file: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help=".env file with STABILITY_API_KEY"),
):
    """Run the API server."""
    import uvicorn

    from .api.app import create_app

    load_dotenv(env_file)
    config = load_config(config_file)
    configure_logging(level=config.logging.level, format_type=config.logging.format, log_file=config.logging.file)

    if host:
        config.api.host = host
    if port is None:
        start = port_start if port_start is not None else config.api.port
        end = port_end if port_end is not None else max(start, config.api.port_range_end)
        port = find_free_port(config.api.host, start, end)
    config.api.port = port

    console.print(f"[green]Audio Studio running on http://{config.api.host}:{port}[/green]")
    console.print(f"Uploads directory: {config.storage.output_dir}")
    console.print(f"Temp uploads directory: {config.storage.temp_dir}")
    if not config.provider.api_key:
        console.print("[yellow]STABILITY_API_KEY is not set; generation requests will fail.[/yellow]")

    uvicorn.run(create_app(config), host=config.api.host, port=port, log_level=config.logging.level.lower())


@app.command()
def files(
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Artifact directory"),
    as_json: bool = typer.Option(False, "--json", help="Print the listing as JSON"),
):
    """List generated audio, newest first."""
    if output_dir is None:
        output_dir = Path(load_config().storage.output_dir)

    summaries = list(ArtifactStore(output_dir).list_artifacts())

    if as_json:
        typer.echo(json.dumps([s.model_dump(mode="json", exclude_none=True) for s in summaries], indent=2))
        return

    if not summaries:
        console.print("[yellow]No generated audio yet.[/yellow]")
        return

    table = Table(title=f"Generated audio ({len(summaries)})")
    table.add_column("File", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Prompt")
    table.add_column("Duration", justify="right")
    table.add_column("Created")
    for summary in summaries:
        table.add_row(
            summary.filename,
            summary.type.value,
            summary.prompt or "-",
            f"{summary.duration}s" if summary.duration is not None else "-",
            summary.created.strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)


if __name__ == "__main__":
    app()
