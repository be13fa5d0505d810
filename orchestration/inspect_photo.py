#!/usr/bin/env python3
"""
Inspect one photo: extract GPS, validate it and show geohash diagnostics.

Usage:
    python inspect_photo.py ~/Pictures/IMG_1234.HEIC
    python inspect_photo.py https://example.com/photo.jpg --precision 9
"""

import asyncio

import typer
from rich.console import Console

from geotag.coordinate_validation import classify_reasonableness, suggest_corrections, validate
from geotag.coordinate_verification import round_trip_test, verify_coordinate_system
from geotag.geohash import accuracy_for
from geotag.gps_extractor import extract_from_payload
from geotag.photo_fetcher import FetchError, fetcher_for

console = Console()

app = typer.Typer()


@app.command()
def main(
    photo: str = typer.Argument(..., help="Photo path or http(s) URL"),
    precision: int = typer.Option(8, "--precision", "-p", min=1, max=12, help="Geohash length"),
    timeout: float = typer.Option(30.0, "--timeout", help="Fetch timeout in seconds"),
):
    """Extract and diagnose the GPS coordinate of a single photo."""
    try:
        payload = asyncio.run(fetcher_for(timeout)(photo))
    except FetchError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(1)

    console.print(f"[cyan]File:[/cyan] {payload.name} ({payload.content_type or 'unknown type'}, {payload.size} bytes)")

    coord = extract_from_payload(payload)
    if coord is None:
        console.print("[red]❌ No GPS data in this image[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✅ GPS found: ({coord.latitude:.6f}, {coord.longitude:.6f})[/green]")

    system = verify_coordinate_system(coord)
    console.print(
        f"Location: {system.lat_hemisphere} {abs(coord.latitude):.6f}°, "
        f"{system.lng_hemisphere} {abs(coord.longitude):.6f}° "
        f"(estimated region: {system.region})"
    )

    validation = validate(coord)
    for issue in validation.issues:
        console.print(f"[yellow]⚠️  {issue.kind.value}: {issue.description}[/yellow]")
    if validation.issues:
        for suggestion in suggest_corrections(coord):
            c = suggestion.coordinate
            console.print(
                f"   💡 {suggestion.description}: ({c.latitude}, {c.longitude}) "
                f"[dim]{suggestion.confidence:.0%}[/dim]"
            )

    location = classify_reasonableness(coord)
    for issue in location.issues:
        console.print(f"[yellow]🌍 {issue}[/yellow]")

    result = round_trip_test(coord, precision)
    console.print(
        f"Geohash ({precision}, {accuracy_for(precision)}): [bold]{result.encoded}[/bold] "
        f"→ round-trip error {result.error_m:.2f} m"
    )


if __name__ == "__main__":
    app()
