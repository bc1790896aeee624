"""Command line entry point for stream-timer.

Runs the server and offers a few helpers around the locally stored
schedule and share tokens.
"""
from typing import Optional

import typer

from stream_timer import config
from stream_timer.core import format_time
from stream_timer.logger import get_logger
from stream_timer.schedule import JsonSlotStorage
from stream_timer.share import build_share_url, request_token
from stream_timer.token_codec import decode

app = typer.Typer(
    name="stream-timer",
    help="Stream schedule timer with shareable display links",
    no_args_is_help=True,
)


def _settings():
    settings = config.load_settings()
    get_logger(level=settings['log_level'], log_dir=settings['log_dir'])
    return settings


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on"),
    debug: bool = typer.Option(False, "--debug", help="Enable Flask debug mode"),
) -> None:
    """Run the control panel and display server."""
    from stream_timer.server import run

    settings = _settings()
    if host:
        settings['host'] = host
    if port:
        settings['port'] = port
    run(settings, debug=debug)


@app.command("list")
def list_sections() -> None:
    """Show the locally stored sections."""
    settings = _settings()
    sections = JsonSlotStorage(config.storage_path(settings)).load()
    if not sections:
        typer.echo("No sections saved.")
        return
    total = 0
    for i, section in enumerate(sections):
        total += section.duration_seconds
        typer.echo(f"{i + 1:>3}. {section.name} ({format_time(section.duration_seconds)})")
    typer.echo(f"Total: {format_time(total)}")


@app.command()
def share(
    server: str = typer.Option("http://localhost:5000", "--server", "-s", help="Base URL of a running server"),
) -> None:
    """Request a share link for the locally stored sections."""
    settings = _settings()
    sections = JsonSlotStorage(config.storage_path(settings)).load()
    token = request_token(server, sections, timeout=settings['encode_timeout'], retries=settings['encode_retries'])
    if token is None:
        typer.echo("Share link not available.", err=True)
        raise typer.Exit(code=1)
    typer.echo(build_share_url(server, token))


@app.command()
def verify(token: str = typer.Argument(..., help="Share token to check")) -> None:
    """Check a share token with the configured secret and print its sections."""
    settings = _settings()
    sections = decode(token, settings['secret'])
    if not sections:
        typer.echo("No valid schedule.", err=True)
        raise typer.Exit(code=1)
    for i, section in enumerate(sections):
        typer.echo(f"{i + 1:>3}. {section.name} ({section.duration} min)")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
