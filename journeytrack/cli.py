from __future__ import annotations

import asyncio
import importlib.metadata as md
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import (
    GPSConfig,
    JourneyConfig,
    load_config,
    load_or_default,
    resolve_config_path,
    setup_logging,
)
from .core.events import Event, EventBus, EventType
from .core.identity import identity_from_config
from .domain.models import JourneyRecord
from .infrastructure.database import AsyncJourneyRepository, JourneyPersistenceHandler
from .infrastructure.gps import AsyncGPSClient, MockGPSClient, PositioningSource, ReplaySource
from .tracking import JourneyEngine, JourneySession, OperationResult, format_elapsed

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="journeytrack CLI")
console = Console()


def _load(config: Optional[Path]) -> JourneyConfig:
    cfg = load_or_default(config)
    setup_logging(cfg.logging)
    return cfg


def _require_user(cfg: JourneyConfig, user: Optional[str]) -> str:
    user_id = identity_from_config(cfg.identity, user).current_user_id()
    if not user_id:
        console.print(f"[red]No user id[/red] - pass --user or set {cfg.identity.user_env}")
        raise typer.Exit(code=1)
    return user_id


def _print_record(record: JourneyRecord) -> None:
    table = Table(title="Your Journey", show_header=False)
    table.add_row("Transport Mode", record.transport_mode.label)
    table.add_row("Total Distance", f"{record.distance_km:.2f} km")
    table.add_row("Total Duration", record.elapsed_formatted)
    table.add_row("Average Speed", f"{record.average_speed_kmh:.2f} km/h")
    table.add_row("Route Points", str(record.point_count))
    console.print(table)


@app.command()
def version() -> None:
    """Print version information."""
    try:
        dist_version = md.version("journeytrack")
    except md.PackageNotFoundError:
        from . import __version__

        dist_version = __version__
    console.print(f"journeytrack {dist_version}")


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/journeytrack.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg = load_config(resolved)
    except (OSError, ValueError) as exc:
        console.print(f"Config validation failed: {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- noise gate: {cfg.tracking.noise_gate_km * 1000:.1f} m")
    console.print(f"- speed unit: {cfg.tracking.speed_unit.value}")
    console.print(f"- database: {cfg.storage.db_path}")


@app.command(name="format-elapsed")
def format_elapsed_cmd(seconds: int = typer.Argument(..., min=0)) -> None:
    """Format a duration in seconds as HH:MM:SS."""
    console.print(format_elapsed(seconds))


_ALERTS = {
    EventType.POSITIONING_UNAVAILABLE: "Positioning unavailable",
    EventType.POSITIONING_ERROR: "Positioning error",
    EventType.SAMPLE_REJECTED: "Sample rejected",
    EventType.PERSISTENCE_FAILED: "Journey not saved",
}


async def _print_alert(event: Event) -> None:
    console.print(f"[yellow]{_ALERTS[event.type]}:[/yellow] {escape(str(event.data))}")


def _run_journey(
    cfg: JourneyConfig,
    source: PositioningSource,
    mode: str,
    seconds: float,
    user_id: Optional[str],
    db: Optional[Path],
) -> None:
    async def _run() -> tuple[OperationResult, list[int]]:
        bus = EventBus()
        for event_type in _ALERTS:
            bus.subscribe(event_type, _print_alert)
        handler: JourneyPersistenceHandler | None = None
        if user_id:
            repo = AsyncJourneyRepository(db or cfg.storage.db_path)
            await repo.init_schema()
            handler = JourneyPersistenceHandler(repo, identity_from_config(cfg.identity, user_id), bus)
            handler.attach()

        await bus.start()
        try:
            session = JourneySession(JourneyEngine(cfg.tracking), source, bus=bus)
            async with session:
                result = await session.start(mode)
                if result.ok:
                    await asyncio.sleep(seconds)
                    result = await session.end()
        finally:
            # drains queued events, including the save of the finished journey
            await bus.stop()
        return result, handler.saved_ids if handler else []

    try:
        result, saved = asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[yellow]Journey abandoned[/yellow]")
        raise typer.Exit(code=130)
    if not result.ok:
        console.print(f"[red]{type(result.error).__name__}:[/red] {escape(str(result.error))}")
        raise typer.Exit(code=1)
    _print_record(result.value)
    for journey_id in saved:
        console.print(f"[green]Saved journey {journey_id}[/green]")


def build_source(cfg: GPSConfig) -> PositioningSource:
    if cfg.mock_mode:
        return MockGPSClient.from_config(cfg)
    return AsyncGPSClient(cfg)


@app.command()
def simulate(
    mode: str = typer.Option("walking", "--mode", "-m", help="walking|running|cycling|driving"),
    seconds: float = typer.Option(10.0, "--seconds", "-s", min=0.0),
    interval: float = typer.Option(1.0, "--interval", help="Seconds between simulated samples"),
    save: bool = typer.Option(False, "--save/--no-save"),
    user: Optional[str] = typer.Option(None, "--user"),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Run a journey against the simulated GPS source."""
    cfg = _load(config)
    user_id = _require_user(cfg, user) if save else None
    _run_journey(cfg, MockGPSClient.from_config(cfg.gps, interval=interval), mode, seconds, user_id, db)


@app.command()
def track(
    mode: str = typer.Option(..., "--mode", "-m", help="walking|running|cycling|driving"),
    seconds: float = typer.Option(3600.0, "--seconds", "-s", min=0.0),
    save: bool = typer.Option(True, "--save/--no-save"),
    user: Optional[str] = typer.Option(None, "--user"),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Track a journey from gpsd (or the mock source when gps.mock_mode is set)."""
    cfg = _load(config)
    user_id = _require_user(cfg, user) if save else None
    _run_journey(cfg, build_source(cfg.gps), mode, seconds, user_id, db)


@app.command()
def replay(
    track_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON lines track"),
    mode: str = typer.Option("walking", "--mode", "-m", help="walking|running|cycling|driving"),
    interval: float = typer.Option(0.05, "--interval", min=0.0, help="Seconds between replayed samples"),
    seconds: Optional[float] = typer.Option(None, "--seconds", "-s", min=0.0, help="Default: whole track"),
    save: bool = typer.Option(False, "--save/--no-save"),
    user: Optional[str] = typer.Option(None, "--user"),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Run a journey from a recorded track file."""
    cfg = _load(config)
    user_id = _require_user(cfg, user) if save else None
    try:
        source = ReplaySource.from_jsonl(track_file, interval=interval)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Cannot read track:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    if seconds is None:
        seconds = len(source) * interval + 0.2
    _run_journey(cfg, source, mode, seconds, user_id, db)


@app.command()
def history(
    user: Optional[str] = typer.Option(None, "--user"),
    limit: int = typer.Option(20, "--limit", min=1),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """List stored journeys for a user."""
    cfg = _load(config)
    user_id = _require_user(cfg, user)

    async def _run() -> tuple[list, dict]:
        repo = AsyncJourneyRepository(db or cfg.storage.db_path)
        await repo.init_schema()
        return await repo.list_journeys(user_id, limit), await repo.get_stats(user_id)

    journeys, stats = asyncio.run(_run())
    if not journeys:
        console.print(f"No journeys for {user_id}")
        return

    table = Table(title=f"Journeys for {user_id}")
    for column in ("ID", "Completed", "Mode", "Distance (km)", "Duration", "Points"):
        table.add_column(column)
    for journey in journeys:
        record = journey.record
        table.add_row(
            str(journey.id),
            record.completed_at.strftime("%Y-%m-%d %H:%M:%S"),
            record.transport_mode.label,
            f"{record.distance_km:.2f}",
            record.elapsed_formatted,
            str(record.point_count),
        )
    console.print(table)
    console.print(
        f"Total: {stats['journeys_total']} journeys, {stats['distance_km_total']:.2f} km, "
        f"{format_elapsed(stats['elapsed_seconds_total'])}"
    )


@app.command(name="export-gpx")
def export_gpx(
    journey_id: int = typer.Argument(...),
    dest: Optional[Path] = typer.Argument(None),
    user: Optional[str] = typer.Option(None, "--user"),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Export a stored journey route as GPX."""
    cfg = _load(config)
    user_id = _require_user(cfg, user)
    output = dest or cfg.storage.export_dir / f"journey_{journey_id}.gpx"

    async def _run() -> int:
        repo = AsyncJourneyRepository(db or cfg.storage.db_path)
        await repo.init_schema()
        return await repo.export_gpx(user_id, journey_id, output)

    count = asyncio.run(_run())
    if count == 0:
        console.print(f"[yellow]Journey {journey_id} not found or has no route[/yellow]")
        raise typer.Exit(code=1)
    console.print({"points": count, "dest": str(output)})


@app.command(name="user-add")
def user_add(
    user_id: str = typer.Argument(...),
    email: Optional[str] = typer.Option(None, "--email"),
    name: Optional[str] = typer.Option(None, "--name"),
    db: Optional[Path] = typer.Option(None, "--db"),
    config: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """Create a user profile if it does not exist."""
    cfg = _load(config)

    async def _run() -> bool:
        repo = AsyncJourneyRepository(db or cfg.storage.db_path)
        await repo.init_schema()
        return await repo.save_user(user_id, email, name)

    if asyncio.run(_run()):
        console.print(f"[green]Created user {user_id}[/green]")
    else:
        console.print(f"User {user_id} already exists")


# Click command export (entrypoint)
cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    app()
