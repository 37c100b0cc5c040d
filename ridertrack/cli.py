from __future__ import annotations

import asyncio
import importlib.metadata as md
import sys
from pathlib import Path

import typer
from rich.console import Console

from .config import AgentConfig, load_config, resolve_config_path
from .core.events import Event, EventType
from .domain.models import SessionSnapshot
from .infrastructure.credentials import FileCredentialStore, build_credential_provider
from .logging_setup import setup_logging
from .service import format_status, run_agent

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="ridertrack CLI")
console = Console()

_STYLES = {
    EventType.SHARING_STARTED: "green",
    EventType.SHARING_STOPPED: "dim",
    EventType.REPORT_SENT: "green",
    EventType.REPORT_FAILED: "yellow",
    EventType.POSITION_ERROR: "yellow",
    EventType.SESSION_ERROR: "red",
}


def _load(config: Path) -> AgentConfig:
    resolved = resolve_config_path(config)
    try:
        return load_config(resolved)
    except FileNotFoundError as exc:
        console.print(f"Config not found: {resolved}")
        raise typer.Exit(code=1) from exc
    except ValueError as exc:
        console.print(f"Config validation failed: {exc}", markup=False)
        raise typer.Exit(code=1) from exc


@app.command()
def version() -> None:
    """Print version information."""
    try:
        dist_version = md.version("ridertrack")
    except md.PackageNotFoundError:
        from . import __version__

        dist_version = __version__
    console.print(f"ridertrack {dist_version}")


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/ridertrack.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    cfg = _load(resolved)
    console.print("Config OK.")
    console.print(f"- rider: {cfg.rider.rider_id or '<not set>'}")
    console.print(f"- endpoint: {cfg.location_url}")
    console.print(f"- position source: {cfg.position.source.value}")
    console.print(f"- token file: {cfg.credentials.token_file}")


@app.command(name="config-which")
def config_which(path: Path = typer.Option(Path("configs/ridertrack.yml"), "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(path)))


@app.command(name="token-set")
def token_set(
    token: str = typer.Argument(..., help="Bearer token issued to the rider"),
    config: Path = typer.Option(Path("configs/ridertrack.yml"), "--config", "-c"),
) -> None:
    """Persist the rider token used for location updates."""
    cfg = _load(config)
    store = FileCredentialStore(cfg.credentials.token_file)
    try:
        store.set_token(token)
    except ValueError as exc:
        console.print(str(exc))
        raise typer.Exit(code=1) from exc
    console.print(f"Token stored in {store.path}")


@app.command(name="token-clear")
def token_clear(config: Path = typer.Option(Path("configs/ridertrack.yml"), "--config", "-c")) -> None:
    """Remove the persisted rider token."""
    cfg = _load(config)
    store = FileCredentialStore(cfg.credentials.token_file)
    if store.clear():
        console.print("Token removed.")
    else:
        console.print("No token stored.")


@app.command(name="token-status")
def token_status(config: Path = typer.Option(Path("configs/ridertrack.yml"), "--config", "-c")) -> None:
    """Show whether a rider token is available (never prints the token)."""
    cfg = _load(config)
    token = build_credential_provider(cfg.credentials).get_token()
    if token:
        console.print("Token available.")
    else:
        console.print("No token: set one with `ridertrack token-set` or $" + cfg.credentials.token_env)
        raise typer.Exit(code=1)


async def _print_status(event: Event, snapshot: SessionSnapshot) -> None:
    if event.type is EventType.POSITION_UPDATE:
        return
    style = _STYLES.get(event.type, "white")
    console.print(f"[{style}]{event.type.name}[/] " + " | ".join(format_status(snapshot)))


@app.command()
def run(
    config: Path = typer.Option(Path("configs/ridertrack.yml"), "--config", "-c"),
    duration: float | None = typer.Option(None, "--duration", help="Stop after N seconds"),
    simulate: bool = typer.Option(False, "--simulate", help="Use the simulated position source"),
) -> None:
    """Share location until Ctrl-C."""
    cfg = _load(config)
    setup_logging(cfg.logging)
    if not cfg.rider.rider_id:
        console.print("rider.rider_id is not configured")
        raise typer.Exit(code=1)

    console.print(f"Sharing location for rider {cfg.rider.rider_id} -> {cfg.location_url}")
    snapshot = asyncio.run(run_agent(cfg, duration=duration, simulate=simulate, observer=_print_status))
    console.print("Location sharing stopped.")
    if snapshot.last_error is not None and not snapshot.is_sharing:
        console.print(f"[red]{snapshot.last_error.message}[/]")
        raise typer.Exit(code=2)


def launch() -> None:
    """Entry point when executed as a module/script."""
    sys.exit(cli())


cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    launch()
