"""Command-line interface for Lantern."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from lantern.config import load_config
from lantern.engine import BehaviorEngine
from lantern.errors import InvalidEventError
from lantern.models import SessionEnvelope
from lantern.storage import ResultStore

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(level: str, output: str = "stderr") -> None:
    """Configure logging with the specified level.

    Args:
        level: Logging level string (debug, info, warning, error).
        output: 'stdout' or 'stderr'.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout if output == "stdout" else sys.stderr,
    )


@click.group()
@click.option("--config", "-c", default=None, help="Path to lantern.yaml config file")
@click.pass_context
def main(ctx: click.Context, config: str | None) -> None:
    """Lantern: behavioral archetype classification for anonymous sessions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    cfg = load_config(config)
    ctx.obj["config"] = cfg
    _setup_logging(cfg.logging.level, cfg.logging.output)


@main.command()
@click.option("--host", default=None, help="Override server host")
@click.option("--port", "-p", default=None, type=int, help="Override server port")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the Lantern ingestion server."""
    import uvicorn

    from lantern.server import create_app

    cfg = ctx.obj["config"]
    server_host = host or cfg.server.host
    server_port = port or cfg.server.port

    console.print(f"[bold green]Starting Lantern on {server_host}:{server_port}[/bold green]")

    app = create_app(ctx.obj["config_path"])
    uvicorn.run(app, host=server_host, port=server_port, log_level=cfg.logging.level)


@main.command()
@click.argument("events_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--save", is_flag=True, help="Persist every evaluation to the result store")
@click.option("--json-output", is_flag=True, help="Output final results as JSON")
@click.pass_context
def replay(ctx: click.Context, events_file: Path, save: bool, json_output: bool) -> None:
    """Replay a JSON Lines telemetry file and classify each session.

    Each line holds {"session_id": ..., "event": {"type": ..., ...}}.
    """
    cfg = ctx.obj["config"]
    engine = BehaviorEngine(cfg)
    if save:
        engine.add_listener(ResultStore(cfg.storage.database, cfg.storage.log_file))

    rejected = 0
    with open(events_file) as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                envelope = SessionEnvelope.model_validate_json(line)
            except ValidationError as exc:
                raise click.ClickException(f"{events_file}:{line_no}: {exc}") from exc
            try:
                engine.ingest(envelope.session_id, envelope.event)
            except InvalidEventError as exc:
                rejected += 1
                logger.warning("%s:%d rejected: %s", events_file, line_no, exc.message)

    results = []
    for session_id in engine.store.session_ids():
        result = engine.latest_result(session_id) or engine.evaluate(session_id)
        results.append(result)

    if json_output:
        click.echo(
            json.dumps(
                [r.model_dump(mode="json", exclude={"contributions"}) for r in results], indent=2
            )
        )
        return

    table = Table(title=f"Replayed Sessions ({events_file.name})")
    table.add_column("Session", style="dim")
    table.add_column("Verdict", style="yellow")
    table.add_column("Confidence", justify="right")
    for name in engine.profiles:
        table.add_column(name, justify="right")
    for r in results:
        table.add_row(
            r.session_id[:16],
            r.verdict,
            f"{r.confidence:.2f}",
            *(f"{r.scores.get(name, 0.0):.2f}" for name in engine.profiles),
        )
    console.print(table)
    if rejected:
        console.print(f"[red]{rejected} event(s) rejected[/red]")


@main.command()
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def profiles(ctx: click.Context, json_output: bool) -> None:
    """Show the active archetype profile table."""
    table_data = ctx.obj["config"].profile_table()

    if json_output:
        click.echo(json.dumps({k: p.model_dump() for k, p in table_data.items()}, indent=2))
        return

    table = Table(title="Archetype Profiles")
    table.add_column("Archetype", style="cyan")
    table.add_column("Navigation (ms)", justify="right")
    table.add_column("Natural movement")
    table.add_column("Pauses")
    table.add_column("Programmatic calls")
    table.add_column("Exploration")
    table.add_column("Path entropy")
    for name, p in table_data.items():
        table.add_row(
            name,
            f"{p.navigation_speed.min_ms:g}-{p.navigation_speed.max_ms:g}",
            str(p.natural_movement),
            str(p.pause_points),
            str(p.programmatic_calls),
            p.exploration_pattern,
            p.path_entropy,
        )
    console.print(table)


@main.command()
@click.option("--last", "-n", default=10, type=int, help="Number of recent results to show")
@click.option("--verdict", "-v", default=None, help="Filter by verdict")
@click.option("--json-output", is_flag=True, help="Output as JSON")
@click.pass_context
def query(ctx: click.Context, last: int, verdict: str | None, json_output: bool) -> None:
    """Query stored classification results."""
    cfg = ctx.obj["config"]
    storage = ResultStore(db_path=cfg.storage.database)

    if verdict:
        results = storage.get_results_by_verdict(verdict, limit=last)
    else:
        results = storage.get_recent_results(limit=last)

    if json_output:
        click.echo(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
        return

    table = Table(title="Recent Classifications")
    table.add_column("Time", style="dim")
    table.add_column("Session", style="cyan")
    table.add_column("Verdict", style="yellow")
    table.add_column("Confidence", justify="right")
    for r in results:
        table.add_row(
            r.timestamp.strftime("%H:%M:%S"),
            r.session_id[:16],
            r.verdict,
            f"{r.confidence:.2f}",
        )
    console.print(table)


if __name__ == "__main__":
    main()
