#!/usr/bin/env python3
"""Photo GPS Correction Orchestration Script.

This script orchestrates the correction of low-precision markers using GPS
data embedded in their attached photos, and persists the outcome to the
marker database.

Relationship with photo_gps_correction.py
-----------------------------------------
- **photo_gps_correction.py**: Pure pipeline logic (data in → data out)
  - identify / correct / batch_correct / apply / stats
  - No database operations, no console output

- **stage2_correct_markers.py** (this file): Orchestration layer
  - Queries the database for low-precision markers
  - Runs the batch correction with an httpx/file fetcher
  - Shows a review table, and with --apply writes qualifying corrections
  - Logs every computed correction for later review

Usage
-----
    # Dry run: compute and review corrections only
    python stage2_correct_markers.py

    # Apply corrections above the confidence threshold
    python stage2_correct_markers.py --apply

    # Show coordinate drift diagnostics for the run
    python stage2_correct_markers.py --diagnostics

Notes
-----
- Sequential: photos and markers are processed one at a time
- Non-fatal: fetch failures and photos without GPS are skipped
- Idempotent: applying twice leaves markers unchanged the second time
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from geotag.config import load_config
from geotag.coordinate_verification import DiagnosticsSession, analyze_drift
from geotag.database import (
    create_database,
    insert_correction,
    query_low_precision_markers,
    update_marker_location,
)
from geotag.photo_fetcher import fetcher_for
from geotag.photo_gps_correction import PhotoGpsCorrector

console = Console()

app = typer.Typer()


def _corrections_table(corrections, apply_threshold):
    table = Table(title="Photo GPS corrections")
    table.add_column("Marker", style="cyan")
    table.add_column("Geohash")
    table.add_column("Accuracy")
    table.add_column("Moved", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Decision")

    for c in corrections:
        decision = (
            "[green]apply[/green]" if c.confidence > apply_threshold else "[yellow]reject[/yellow]"
        )
        table.add_row(
            c.marker_id,
            f"{c.original_geohash} → {c.corrected_geohash}",
            c.accuracy_improvement,
            f"{c.distance_meters:.1f} m",
            f"{c.confidence:.0%}",
            decision,
        )
    return table


def _print_drift(session):
    report = analyze_drift(session)
    if report is None:
        console.print("[dim]Not enough coordinate data for drift analysis[/dim]")
        return

    console.print("\n[bold cyan]COORDINATE DRIFT ANALYSIS[/bold cyan]")
    for step in report.steps:
        console.print(
            f"  {step.from_stage} → {step.to_stage}: "
            f"lat {step.lat_delta_m:.2f}m, lng {step.lng_delta_m:.2f}m, "
            f"total {step.distance_m:.2f}m"
        )
    console.print(f"[bold]🎯 Total drift: {report.total_distance_m:.2f}m[/bold]")


def correct_markers(db_path, config, apply=False, diagnostics=False):
    """Main correction pipeline.

    Args:
        db_path (Path): Marker database.
        config (dict): Loaded configuration.
        apply (bool): Write qualifying corrections back to the markers table.
        diagnostics (bool): Print coordinate drift analysis afterwards.

    Returns:
        list[Correction]: Every correction computed in this run.
    """
    console.print("[bold cyan]Photo GPS Correction Pipeline[/bold cyan]")
    console.print(f"[cyan]Database:[/cyan] {db_path}\n")

    session = DiagnosticsSession() if diagnostics else None
    corrector = PhotoGpsCorrector.from_config(
        config, fetcher_for(config["fetch"]["timeout"]), session=session
    )

    conn = create_database(db_path)
    markers = query_low_precision_markers(conn, corrector.precision_threshold)

    if not markers:
        console.print("[green]✅ No low precision markers found[/green]")
        conn.close()
        return []

    with_photos = sum(1 for marker in markers if marker.has_photos)
    console.print(
        f"[yellow]🔍 {len(markers)} low precision markers, {with_photos} with photos[/yellow]\n"
    )

    with console.status("[cyan]Recovering GPS from photos..."):
        corrections = asyncio.run(corrector.batch_correct(markers))

    if corrections:
        console.print(_corrections_table(corrections, corrector.apply_threshold))

    applied_ids = set()
    if apply:
        for marker in corrector.apply(markers, corrections):
            if marker.corrected:
                update_marker_location(conn, marker)
                applied_ids.add(marker.id)

    for correction in corrections:
        insert_correction(conn, correction, applied=correction.marker_id in applied_ids)

    conn.close()

    stats = corrector.stats(corrections)
    console.print(f"\n[bold cyan]{'=' * 60}[/bold cyan]")
    console.print("[bold cyan]Correction Complete[/bold cyan]")
    console.print(f"[bold cyan]{'=' * 60}[/bold cyan]")
    console.print(f"✅ Corrections computed: {stats.count}")
    if stats.count:
        console.print(f"📏 Mean distance moved: {stats.mean_distance:.1f} m")
        console.print(f"🎯 Mean confidence: {stats.mean_confidence:.0%}")
        console.print(f"⭐ High confidence: {stats.high_confidence_count}")
        for transition, count in stats.precision_histogram.items():
            console.print(f"   precision {transition}: {count}")
    if apply:
        console.print(f"💾 Applied: {len(applied_ids)}")
    else:
        console.print("[dim]Dry run - re-run with --apply to update markers[/dim]")

    if session is not None:
        _print_drift(session)

    return corrections


@app.command()
def main(
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
    apply: bool = typer.Option(False, "--apply", help="Write qualifying corrections back"),
    diagnostics: bool = typer.Option(False, "--diagnostics", help="Print coordinate drift analysis"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show per-photo log messages"),
):
    """Correct low precision markers using GPS data from their photos."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    try:
        config_data = load_config(config)
    except FileNotFoundError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)
    except Exception as e:
        typer.echo(f"❌ Error loading config: {e}")
        raise typer.Exit(1)

    db_path = Path(db).expanduser() if db else config_data["paths"]["database"]

    if not db_path.exists():
        typer.echo(f"❌ Database not found: {db_path}")
        typer.echo("Run stage1_import_markers.py first to create database")
        raise typer.Exit(1)

    correct_markers(db_path, config_data, apply=apply, diagnostics=diagnostics)


if __name__ == "__main__":
    app()
