#!/usr/bin/env python3
"""
Import location records into the local marker store.

Reads a JSON file holding a list of records exported by the persistence
layer. Event-style records ({"id", "tags": [["g", geohash], ...], "content"})
and flat records ({"id", "geohash", "photo_refs"}) are both accepted.

Usage:
    # Use config.yaml database path (recommended)
    python stage1_import_markers.py records.json

    # Override database path
    python stage1_import_markers.py records.json --db ~/test/markers.db
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from geotag.config import load_config
from geotag.database import create_database, insert_marker
from geotag.photo_gps_correction import marker_from_record

console = Console()

app = typer.Typer()


def import_markers(records_path, db_path):
    """Load records from JSON and upsert them as markers.

    Idempotent: re-importing the same file replaces rows by id.

    Returns:
        int: Number of markers stored.
    """
    console.print(f"[cyan]Records:[/cyan] {records_path}")
    console.print(f"[cyan]Database:[/cyan] {db_path}\n")

    with open(records_path) as f:
        records = json.load(f)

    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = create_database(db_path)

    stored = 0
    skipped = 0
    SAMPLE_DISPLAY_LIMIT = 20  # Only show detailed output for first 20 markers

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("[cyan]Importing records...", total=len(records))

        for record in records:
            marker = marker_from_record(record)
            progress.advance(task)
            if marker is None:
                skipped += 1
                continue

            insert_marker(conn, marker)
            stored += 1
            if stored <= SAMPLE_DISPLAY_LIMIT:
                progress.console.print(
                    f"  [dim green]✅ {marker.id}: {marker.geohash} "
                    f"({marker.accuracy_label}, {len(marker.photo_refs)} photos)[/dim green]"
                )

    conn.close()

    console.print(f"\n[bold green]✅ Stored {stored} markers[/bold green]")
    if skipped:
        console.print(f"[yellow]⏭️  Skipped {skipped} records without a usable geohash[/yellow]")
    return stored


@app.command()
def main(
    records: str = typer.Argument(..., help="JSON file with a list of location records"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file (default: auto-detect)",
    ),
    db: Optional[str] = typer.Option(
        None,
        "--db",
        "-d",
        help="Path to marker database (overrides config)",
    ),
):
    """Import location records into the marker database."""
    try:
        config_data = load_config(config)
    except FileNotFoundError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    except Exception as e:
        typer.echo(f"❌ Error loading config: {e}")
        raise typer.Exit(1)

    db_path = Path(db).expanduser() if db else config_data["paths"]["database"]

    records_path = Path(records).expanduser()
    if not records_path.exists():
        typer.echo(f"❌ Records file not found: {records_path}")
        raise typer.Exit(1)

    try:
        import_markers(records_path, db_path)
    except json.JSONDecodeError as e:
        typer.echo(f"❌ Records file is not valid JSON: {e}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
