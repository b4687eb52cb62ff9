"""Standalone vegaview CLI.

Usage:
    vegaview serve  [--port PORT] [--no-open]
    vegaview plot   SPEC_FILE [--port PORT] [--no-open] [--exit]
    vegaview status [--port PORT]
"""

from __future__ import annotations

import threading
from pathlib import Path

import typer
from rich.console import Console

from vegaview.config import ViewerConfig

app = typer.Typer(
    name="vegaview",
    help="Push Vega / Vega-Lite specs to a browser tab.",
    no_args_is_help=True,
)
console = Console()


def _info(msg: str) -> None:
    console.print(f"[dim]>[/dim] {msg}")


def _success(msg: str) -> None:
    console.print(f"[green]✓[/green] {msg}")


def _error(msg: str) -> None:
    console.print(f"[red]✗[/red] {msg}")


def _config(port: int | None, no_open: bool) -> ViewerConfig:
    """Environment config plus the options given on the command line."""
    overrides: dict[str, object] = {}
    if port is not None:
        overrides["port"] = port
    if no_open:
        overrides["open_browser"] = False
    return ViewerConfig.from_env().with_overrides(**overrides)


def _wait_until_interrupted() -> None:
    """Block the main thread until Ctrl-C."""
    stop = threading.Event()
    try:
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        pass


@app.command()
def serve(
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to."),
    no_open: bool = typer.Option(False, "--no-open", help="Don't open browser."),
) -> None:
    """Start a viewer and keep it running until interrupted."""
    from vegaview import PortInUseError, Viewer

    viewer = Viewer(_config(port, no_open))
    try:
        info = viewer.start_server()
    except PortInUseError as e:
        _error(str(e))
        raise typer.Exit(1)

    if info.connected:
        _success(f"Browser connected at {info.url}")
    else:
        _info(f"Waiting for a browser at {info.url}")
    try:
        _wait_until_interrupted()
    finally:
        viewer.stop_server()
        _info("Server stopped.")


@app.command()
def plot(
    spec_file: Path = typer.Argument(help="Vega / Vega-Lite spec as a JSON file."),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind to."),
    no_open: bool = typer.Option(False, "--no-open", help="Don't open browser."),
    exit_after: bool = typer.Option(
        False, "--exit", help="Stop the server right after sending."
    ),
) -> None:
    """Send a spec file to the browser."""
    from vegaview import DocumentEncodingError, LostConnectionError, PortInUseError, Viewer
    from vegaview.codec import decode

    try:
        spec = decode(spec_file.read_text(encoding="utf-8"))
    except OSError as e:
        _error(f"Cannot read {spec_file}: {e}")
        raise typer.Exit(1)
    except DocumentEncodingError as e:
        _error(f"Not valid JSON: {spec_file} ({e})")
        raise typer.Exit(1)

    viewer = Viewer(_config(port, no_open))
    try:
        result = viewer.plot(spec)
    except (LostConnectionError, PortInUseError, DocumentEncodingError) as e:
        viewer.stop_server()
        _error(str(e))
        raise typer.Exit(1)

    _success(f"Sent {spec_file.name} to http://localhost:{result.port}")
    try:
        if not exit_after:
            _info("Press Ctrl-C to stop the server.")
            _wait_until_interrupted()
    finally:
        viewer.stop_server()


@app.command()
def status(
    port: int | None = typer.Option(None, "--port", "-p", help="Port to probe."),
) -> None:
    """Show whether a vegaview server answers on the given port."""
    from vegaview._utils import health_check

    cfg = _config(port, no_open=True)
    info = health_check(f"http://{cfg.host}:{cfg.port}")
    if info:
        _success("Server is running")
        console.print(f"  [bold]Port:[/bold]       {info.get('port')}")
        console.print(f"  [bold]Connected:[/bold]  {info.get('connected')}")
        console.print(f"  [bold]State:[/bold]      {info.get('state')}")
    else:
        _info(f"No server found on port {cfg.port}.")


if __name__ == "__main__":
    app()
