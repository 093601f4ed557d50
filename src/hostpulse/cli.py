"""Command-line interface for the hostpulse agent."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import load_settings
from .edge.agent import PushAgent, run_agent
from .edge.collectors import CollectionError, build_collector
from .edge.collectors.base import MetricsSnapshot
from .edge.config import SNAPSHOT_SCHEMAS, AgentConfig, ConfigError, load_config
from .utils.durations import format_duration, parse_duration
from .utils.logger import setup_logging

app = typer.Typer(
    name="hostpulse",
    help="Lightweight host monitoring agent that pushes system metrics to a remote collector",
    add_completion=False,
)

console = Console()


def _load(config_path: Optional[Path]) -> AgentConfig:
    """Load config or exit with status 1."""
    try:
        return load_config(config_path, settings=load_settings())
    except ConfigError as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        raise typer.Exit(1)


def _mask(token: str) -> str:
    if len(token) <= 4:
        return "*" * len(token)
    return token[:2] + "*" * (len(token) - 4) + token[-2:]


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to collector.yml"),
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit"),
):
    """Collect and push metrics on the configured interval."""
    config = _load(config_path)
    logger = setup_logging(config.logging.level, config.logging.format, config.logging.file)

    if once:
        agent = PushAgent(config, log=logger)
        result = asyncio.run(agent.run_once())
        raise typer.Exit(0 if result.ok else 1)

    raise typer.Exit(run_agent(config, log=logger))


@app.command()
def collect(
    schema: str = typer.Option("flat", "--schema", "-s", help="Snapshot schema: flat, structured"),
):
    """Sample the host once and print the snapshot."""
    if schema not in SNAPSHOT_SCHEMAS:
        console.print(f"[red]Unknown schema '{schema}', expected one of: {', '.join(SNAPSHOT_SCHEMAS)}[/red]")
        raise typer.Exit(1)

    async def sample() -> MetricsSnapshot:
        return await build_collector(schema).collect()

    try:
        snapshot = asyncio.run(sample())
    except CollectionError as e:
        console.print(f"[red]Failed to collect metrics: {e}[/red]")
        raise typer.Exit(1)

    console.print_json(json.dumps(snapshot.to_dict()))


@app.command("check-config")
def check_config(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to collector.yml"),
):
    """Validate the configuration and show the effective settings."""
    config = _load(config_path)
    collector = config.collector
    delivery = config.delivery

    table = Table(title=f"Configuration ({config.source})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("interval", format_duration(parse_duration(collector.interval)))
    table.add_row("max_retries", str(collector.max_retries))
    table.add_row("initial_delay", format_duration(parse_duration(collector.initial_delay)))
    table.add_row("schema", collector.schema)
    table.add_row("endpoint", delivery.endpoint)
    table.add_row("auth_token", _mask(delivery.auth_token))
    table.add_row("timeout", format_duration(parse_duration(delivery.timeout)))
    table.add_row("log level", config.logging.level)
    table.add_row("log format", config.logging.format)
    table.add_row("log file", config.logging.file or "-")

    console.print(table)
    console.print("[bold green]Configuration is valid[/bold green]")


if __name__ == "__main__":
    app()
