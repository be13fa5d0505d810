#!/usr/bin/env python3
"""Geohash Precision Upgrade Orchestration Script.

Re-encodes low precision markers at the target geohash length without any
new location data. Run it after stage2_correct_markers.py: markers that a
photo could correct are already at the target length and are left alone.

The location does not become more accurate; the stored geohash only
reaches the length other tools expect. Upgraded markers keep
corrected = False so they stay distinguishable from photo corrections.

Usage
-----
    # Dry run: list the upgrades only
    python stage3_upgrade_precision.py

    # Write upgraded geohashes back to the database
    python stage3_upgrade_precision.py --apply

    # Upgrade at most 50 markers to length 9
    python stage3_upgrade_precision.py --max 50 --target 9 --apply
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from geotag.config import load_config
from geotag.database import create_database, query_low_precision_markers, update_marker_location
from geotag.precision_migration import apply_precision_upgrades, upgrade_many, upgrade_stats

console = Console()

app = typer.Typer()


def _upgrades_table(upgrades):
    table = Table(title="Geohash precision upgrades")
    table.add_column("Marker", style="cyan")
    table.add_column("Geohash")
    table.add_column("Precision", justify="right")
    table.add_column("Accuracy")

    for u in upgrades:
        table.add_row(
            u.marker_id,
            f"{u.original_geohash} → {u.upgraded_geohash}",
            f"{u.original_precision} → {u.upgraded_precision}",
            u.accuracy,
        )
    return table


def upgrade_markers(db_path, config, apply=False, target_precision=None, max_upgrades=None):
    """Upgrade stored markers below the target geohash length.

    Args:
        db_path (Path): Marker database.
        config (dict): Loaded configuration.
        apply (bool): Write upgraded geohashes back to the markers table.
        target_precision (int): Overrides correction.target_precision.
        max_upgrades (int): Overrides migration.max_upgrades.

    Returns:
        list[PrecisionUpgrade]: Every upgrade computed in this run.
    """
    target = target_precision or config["correction"]["target_precision"]
    limit = max_upgrades if max_upgrades is not None else config["migration"]["max_upgrades"]

    console.print("[bold cyan]Geohash Precision Upgrade[/bold cyan]")
    console.print(f"[cyan]Database:[/cyan] {db_path}")
    console.print(f"[cyan]Target precision:[/cyan] {target}\n")

    conn = create_database(db_path)
    # Ordered by precision, then id
    markers = query_low_precision_markers(conn, target)

    upgrades = upgrade_many(markers, max_upgrades=limit, target_precision=target)
    if not upgrades:
        console.print("[green]✅ No markers need a precision upgrade[/green]")
        conn.close()
        return []

    console.print(_upgrades_table(upgrades))

    if apply:
        upgraded_ids = {u.marker_id for u in upgrades}
        for marker in apply_precision_upgrades(markers, upgrades):
            if marker.id in upgraded_ids:
                update_marker_location(conn, marker)

    conn.close()

    stats = upgrade_stats(upgrades)
    console.print(f"\n✅ Upgrades computed: {stats['count']}")
    for precision, count in sorted(stats["by_original_precision"].items()):
        console.print(f"   precision {precision} → {target}: {count}")
    if len(markers) > len(upgrades):
        console.print(f"[yellow]⏭️  {len(markers) - len(upgrades)} markers left for the next run[/yellow]")
    if apply:
        console.print(f"💾 Applied: {stats['count']}")
    else:
        console.print("[dim]Dry run - re-run with --apply to update markers[/dim]")

    return upgrades


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
    apply: bool = typer.Option(False, "--apply", help="Write upgraded geohashes back"),
    target: Optional[int] = typer.Option(
        None, "--target", "-t", min=1, max=12, help="Geohash length (overrides config)"
    ),
    max_upgrades: Optional[int] = typer.Option(
        None, "--max", min=0, help="Maximum markers to upgrade (overrides config)"
    ),
):
    """Upgrade low precision markers to a longer geohash."""
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

    upgrade_markers(
        db_path, config_data, apply=apply, target_precision=target, max_upgrades=max_upgrades
    )


if __name__ == "__main__":
    app()
