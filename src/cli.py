"""Command line interface for the realty CRM.

Usage:
    realty-crm server          # Start the API server
    realty-crm init-db         # Create missing tables
    realty-crm info            # Show configuration
"""
from __future__ import annotations

import typer
import uvicorn

from core.config import get_settings
from core.logging_config import get_logger, setup_logging

LOGGER = get_logger(__name__)
SETTINGS = get_settings()

app = typer.Typer(help="Realty CRM")


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
) -> None:
    """Realty CRM - pipelines, notifications and an assistant for a small brokerage."""
    log_level = "DEBUG" if verbose else SETTINGS.log_level
    setup_logging(level=log_level, json_format=SETTINGS.log_format == "json")


# =============================================================================
# Server Commands
# =============================================================================


@app.command("server")
def run_server(
    host: str = typer.Option(SETTINGS.api_host, help="Host to bind to"),
    port: int = typer.Option(SETTINGS.api_port, help="Port to bind to"),
    reload: bool = typer.Option(False, help="Enable auto-reload for development"),
) -> None:
    """Start the API server."""
    typer.echo(f"Starting API server on {host}:{port}...")
    uvicorn.run("api.app:app", host=host, port=port, reload=reload, log_config=None)


# =============================================================================
# Database Commands
# =============================================================================


@app.command("init-db")
def init_database() -> None:
    """Create any missing tables. Existing tables are left alone."""
    from core.db import init_db

    result = init_db()
    if result["status"] == "error":
        typer.secho(f"✗ init-db failed: {result.get('error')}", fg="red")
        raise typer.Exit(1)

    typer.secho(f"✓ Created {len(result['tables_created'])} table(s)", fg="green")
    for warning in result["warnings"]:
        typer.secho(f"  ! {warning}", fg="yellow")


@app.command("info")
def show_info() -> None:
    """Show application configuration info."""
    typer.echo("Realty CRM Configuration:")
    typer.echo(f"  Environment: {SETTINGS.environment}")
    typer.echo(f"  Log Level: {SETTINGS.log_level}")
    typer.echo(f"  Enforce Transitions: {SETTINGS.enforce_status_transitions}")
    typer.echo(f"  OpenAI Configured: {bool(SETTINGS.openai_api_key)}")
    typer.echo(f"  Anthropic Configured: {bool(SETTINGS.anthropic_api_key)}")


if __name__ == "__main__":
    app()
