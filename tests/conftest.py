"""Pytest fixtures and configuration for geotag pipeline tests.

This module provides shared test fixtures for:
- Temporary databases (auto-cleanup)
- Synthetic photos with and without embedded GPS (built with Pillow)
- Fake photo fetchers (succeeding, failing, counting calls)
- Mock configurations
- Test directory structures

Fixtures are automatically discovered by pytest and available to all test files.
"""

import io
import shutil
import sqlite3
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator

import pytest
from PIL import ExifTags, Image

from geotag.database import create_database
from geotag.models import PhotoPayload
from geotag.photo_fetcher import FetchError


def to_dms(value: float) -> tuple[float, float, float]:
    """Split decimal degrees into a positive (deg, min, sec) tuple."""
    value = abs(value)
    degrees = int(value)
    minutes_float = (value - degrees) * 60
    minutes = int(minutes_float)
    seconds = round((minutes_float - minutes) * 60, 4)
    return (float(degrees), float(minutes), seconds)


def make_jpeg(gps: dict | None = None, size: int = 128) -> bytes:
    """Build a noisy JPEG (comfortably above the EXIF size gate).

    Args:
        gps: GPS IFD as {tag_id: value}, written under the GPSInfo tag.
            None writes no EXIF at all; an empty dict writes EXIF without GPS.
        size: Width and height in pixels.
    """
    img = Image.effect_noise((size, size), 64).convert("RGB")
    buffer = io.BytesIO()
    if gps is None:
        img.save(buffer, "JPEG")
    else:
        exif = Image.Exif()
        exif[ExifTags.Base.Make] = "TestCam"
        if gps:
            exif[ExifTags.IFD.GPSInfo] = gps
        img.save(buffer, "JPEG", exif=exif)
    return buffer.getvalue()


def make_gps_jpeg(lat: float, lon: float, with_refs: bool = True, altitude: float | None = None) -> bytes:
    """Build a JPEG whose EXIF GPS block encodes (lat, lon)."""
    gps = {
        ExifTags.GPS.GPSLatitude: to_dms(lat),
        ExifTags.GPS.GPSLongitude: to_dms(lon),
    }
    if with_refs:
        gps[ExifTags.GPS.GPSLatitudeRef] = "S" if lat < 0 else "N"
        gps[ExifTags.GPS.GPSLongitudeRef] = "W" if lon < 0 else "E"
    if altitude is not None:
        gps[ExifTags.GPS.GPSAltitudeRef] = 1 if altitude < 0 else 0
        gps[ExifTags.GPS.GPSAltitude] = abs(altitude)
    return make_jpeg(gps)


class FakeFetcher:
    """Async fetcher serving canned payloads and recording every call.

    Values may be PhotoPayload (returned) or an exception (raised).
    Unknown references raise FetchError like an HTTP 404.
    """

    def __init__(self, responses: dict):
        self.responses = responses
        self.calls: list[str] = []

    async def __call__(self, ref: str) -> PhotoPayload:
        self.calls.append(ref)
        response = self.responses.get(ref)
        if response is None:
            raise FetchError(ref, "HTTP 404")
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def gps_jpeg_payload():
    """Factory: PhotoPayload of a JPEG carrying the given coordinate."""

    def _make(lat: float, lon: float, name: str = "photo.jpg") -> PhotoPayload:
        return PhotoPayload(data=make_gps_jpeg(lat, lon), content_type="image/jpeg", name=name)

    return _make


@pytest.fixture
def plain_jpeg_payload() -> PhotoPayload:
    """JPEG without any EXIF data."""
    return PhotoPayload(data=make_jpeg(), content_type="image/jpeg", name="plain.jpg")


@pytest.fixture
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary SQLite database path for testing.

    Yields:
        Path: Path to temporary database file

    Cleanup:
        Automatically removes database after test completes
    """
    db_file = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    db_path = Path(db_file.name)
    db_file.close()

    yield db_path

    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def temp_db_with_schema(temp_db: Path) -> Generator[sqlite3.Connection, None, None]:
    """Create a temporary database with schema initialized.

    Yields:
        sqlite3.Connection: Connected database with markers/corrections tables
    """
    conn = create_database(temp_db)
    yield conn
    conn.close()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for file operations.

    Yields:
        Path: Path to temporary directory

    Cleanup:
        Automatically removes directory and all contents
    """
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path

    if temp_path.exists():
        shutil.rmtree(temp_path)


@pytest.fixture
def mock_config(temp_db: Path) -> Dict[str, Any]:
    """Create a mock configuration for testing.

    Returns:
        Dict: Configuration dictionary with temporary paths
    """
    return {
        "paths": {
            "database": temp_db,
        },
        "correction": {
            "precision_threshold": 6,
            "target_precision": 8,
            "max_corrections": 10,
            "apply_threshold": 0.5,
            "high_confidence_threshold": 0.7,
        },
        "extraction": {
            "min_exif_bytes": 1024,
        },
        "fetch": {
            "timeout": 5.0,
        },
        "migration": {
            "max_upgrades": 15,
        },
    }


@pytest.fixture
def sample_records() -> list:
    """Event-style location records as delivered by the persistence layer."""
    return [
        {
            "id": "review-utrecht",
            "tags": [
                ["g", "u281z"],
                ["title", "Dom tower"],
                ["image", "https://photos.example.com/dom.jpg"],
            ],
            "content": "Climbed the tower https://photos.example.com/dom.jpg",
        },
        {
            "id": "review-precise",
            "tags": [["g", "u178kf2n"], ["image", "https://photos.example.com/a.jpg"]],
            "content": "",
        },
        {
            "id": "review-coarse",
            "tags": [["g", "u2"]],
            "content": "No photos here",
        },
        {
            "id": "review-no-geohash",
            "tags": [["title", "Somewhere"]],
            "content": "https://photos.example.com/lost.jpg",
        },
    ]


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests requiring network or sample data"
    )
