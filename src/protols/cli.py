from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from protols import __version__
from protols.config import load_config
from protols.exceptions import ConfigError
from protols.logging import configure_logging, get_logger

app = typer.Typer(add_completion=False)

logger = get_logger(__name__)


def build_overrides(
    *,
    address: Optional[str],
    port: Optional[int],
    logfile: Optional[Path],
    debug: bool,
) -> dict[str, dict[str, object]]:
    """Command line flags as config sections; unset flags are left out."""
    overrides: dict[str, dict[str, object]] = {"server": {}, "log": {}}
    if address is not None:
        overrides["server"]["address"] = address
    if port is not None:
        overrides["server"]["port"] = port
    if logfile is not None:
        overrides["log"]["file"] = str(logfile)
    if debug:
        overrides["log"]["level"] = "DEBUG"
    return overrides


@app.command("serve")
def serve(
    address: Optional[str] = typer.Option(
        None, "--address", help="Listen on TCP at this address instead of stdio."
    ),
    port: Optional[int] = typer.Option(None, "--port", help="TCP port to listen on."),
    logfile: Optional[Path] = typer.Option(None, "--logfile", help="Append logs to this file."),
    debug: bool = typer.Option(False, "--debug", help="Log at DEBUG level."),
    config: Optional[Path] = typer.Option(None, "--config", help="Path to protols.toml."),
) -> None:
    """Run the protobuf language server."""
    try:
        settings = load_config(
            config_path=config,
            overrides=build_overrides(
                address=address, port=port, logfile=logfile, debug=debug
            ),
        )
        configure_logging(
            settings.log.level,
            log_file=settings.log.file,
            json_format=settings.log.format == "json",
        )
    except ConfigError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2) from exc

    from protols.server import start

    logger.info("starting", version=__version__)
    start(settings)


@app.command("version")
def version() -> None:
    """Print the protols version."""
    typer.echo(__version__)
