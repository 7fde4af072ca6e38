"""
CLI for pvsync-agent using Typer.

Commands:
  start   Run the agent (foreground) until Ctrl+C / SIGTERM
  read    Read and parse the current sensor record
  info    Show configuration and the resulting schedule
"""

import importlib.metadata
import sys
import time
from pathlib import Path

import click
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pvsync_agent.agent import Agent, create_transport, run_agent
from pvsync_agent.collector.parser import parse_record
from pvsync_agent.collector.record_source import read_current_record
from pvsync_agent.config.settings import (
    VALID_TRANSPORTS,
    AgentConfig,
    AppConfig,
    StorageConfig,
    load_schedule_config,
)
from pvsync_agent.errors import ParseError, PvSyncError, RecordSourceError, SensorDomainError
from pvsync_agent.utils.ids import create_service_id
from pvsync_agent.utils.logging import setup_logging

app = typer.Typer(
    name="pvsync",
    help="pvsync - sensor sampling and batch upload agent",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def print_banner():
    console.print("\n[bold cyan]pvsync[/bold cyan] | Sensor Sampling Agent\n")


def _load_agent_config(**overrides) -> AgentConfig:
    """Settings from env/.env with CLI overrides applied on top."""
    config = AgentConfig()
    updates = {k: v for k, v in overrides.items() if v is not None}
    if updates:
        config = AgentConfig(**{**config.model_dump(), **updates})
    return config


@app.command()
def start(
    record_path: Path | None = typer.Option(None, "--record", "-r", help="Sensor record file"),
    schedule_path: Path | None = typer.Option(
        None, "--schedule", "-s", help="Schedule file (<sampling> <upload> seconds)"
    ),
    transport: str | None = typer.Option(
        None,
        "--transport",
        "-t",
        help="Transport: local, cloud or memory",
        click_type=click.Choice(sorted(VALID_TRANSPORTS), case_sensitive=False),
    ),
    duration: float | None = typer.Option(
        None, "--duration", help="Stop after this many seconds (runs until Ctrl+C by default)"
    ),
):
    """
    Start the agent in the foreground.

    Exits 0 after a clean shutdown and 1 when startup fails.
    """
    print_banner()

    try:
        agent_config = _load_agent_config(
            record_path=record_path, schedule_path=schedule_path, transport=transport
        )
        app_config = AppConfig()
        log_file = app_config.log_dir / "pvsync.log"
        logger = setup_logging(level=app_config.log_level, log_file=log_file)

        transport_impl = create_transport(
            agent_config,
            logger,
            StorageConfig() if agent_config.transport == "cloud" else None,
        )
        agent = Agent(config=agent_config, transport=transport_impl, logger=logger)

        console.print(f"Record: [cyan]{agent_config.record_path}[/cyan]")
        console.print(f"Schedule: [cyan]{agent_config.schedule_path}[/cyan]")
        console.print(f"Transport: [cyan]{agent_config.transport}[/cyan]")
        console.print(f"Logs: [cyan]{log_file}[/cyan]")
        console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

        run_agent(agent, duration=duration)

    except ValidationError as e:
        console.print(f"[red]ERROR: Invalid configuration[/red]\n{escape(str(e))}")
        sys.exit(1)
    except PvSyncError as e:
        console.print(f"[red]ERROR: {escape(str(e))}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped by user[/yellow]\n")

    console.print("[green]Agent stopped[/green]\n")


@app.command()
def read(
    record_path: Path | None = typer.Option(None, "--record", "-r", help="Sensor record file"),
    count: int = typer.Option(1, "--count", "-n", help="Number of readings", min=1),
    interval: float = typer.Option(1.0, "--interval", "-i", help="Seconds between readings"),
):
    """
    Read and parse the current sensor record.

    Shows each parsed reading, or why the record was rejected.
    """
    print_banner()
    agent_config = _load_agent_config(record_path=record_path)

    table = Table(title=f"Readings from {agent_config.record_path}", show_header=True)
    table.add_column("#", style="dim")
    table.add_column("Timestamp (UTC)")
    table.add_column("Channel", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Unit")
    table.add_column("Status")

    failures = 0
    for i in range(1, count + 1):
        try:
            reading = parse_record(read_current_record(agent_config.record_path))
            table.add_row(
                str(i),
                reading.time.strftime("%H:%M:%S.%f")[:-3],
                reading.channel_id,
                f"{reading.value:g}",
                reading.unit,
                "[green]OK[/green]",
            )
        except RecordSourceError as e:
            failures += 1
            table.add_row(str(i), "", "", "", "", f"[red]READ FAIL[/red] {escape(str(e))}")
        except SensorDomainError as e:
            failures += 1
            status = f"[yellow]SENSOR ERROR[/yellow] {escape(str(e))}"
            table.add_row(str(i), "", "", "", "", status)
        except ParseError as e:
            failures += 1
            table.add_row(str(i), "", "", "", "", f"[red]MALFORMED[/red] {escape(str(e))}")

        if i < count:
            time.sleep(interval)

    console.print(table)
    if failures == count:
        sys.exit(1)


@app.command()
def info():
    """
    Show effective configuration and the trigger schedule.
    """
    print_banner()

    try:
        package_version = importlib.metadata.version("pvsync-agent")
    except importlib.metadata.PackageNotFoundError:
        package_version = "dev"
    console.print(f"Version: [green]{package_version}[/green]\n")

    try:
        agent_config = AgentConfig()
    except ValidationError as e:
        console.print(f"[red]ERROR: Invalid configuration[/red]\n{escape(str(e))}")
        sys.exit(1)

    console.print("[bold]Configuration:[/bold]")
    console.print(
        f"  Service ID: [cyan]{create_service_id(agent_config.urn, agent_config.service_name)}"
        "[/cyan]"
    )
    console.print(f"  Model: [cyan]{agent_config.model_name}[/cyan]")
    console.print(f"  Record file: [cyan]{agent_config.record_path}[/cyan]")
    console.print(f"  Transport: [cyan]{agent_config.transport}[/cyan]")
    if agent_config.transport == "local":
        console.print(f"  Output: [cyan]{agent_config.output_dir}[/cyan]")
    elif agent_config.transport == "cloud":
        storage = StorageConfig()
        console.print(
            f"  Storage: [cyan]{storage.storage_provider}: {storage.storage_bucket}[/cyan]"
        )

    schedule = load_schedule_config(
        agent_config.schedule_path, setup_logging(level=AppConfig().log_level)
    )
    console.print("\n[bold]Schedule:[/bold]")
    console.print(f"  Source: [dim]{agent_config.schedule_path}[/dim]")
    console.print(f"  Sampling: [cyan]every {schedule.sampling_interval_seconds}s[/cyan]")
    if schedule.intervals_equal:
        console.print("  Upload: [cyan]on every sampling tick[/cyan] (single trigger)")
    else:
        console.print(f"  Upload: [cyan]every {schedule.upload_interval_seconds}s[/cyan]")

    if agent_config.transport == "local" and agent_config.output_dir.exists():
        batch_files = list(agent_config.output_dir.rglob("*.parquet"))
        size_mb = sum(f.stat().st_size for f in batch_files) / (1024 * 1024)
        console.print("\n[bold]Data:[/bold]")
        console.print(f"  Batch files: [green]{len(batch_files)}[/green]")
        console.print(f"  Total size: [green]{size_mb:.2f} MB[/green]")

    console.print()


if __name__ == "__main__":
    app()
