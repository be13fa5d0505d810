"""Coordinate diagnostics: history tracking, drift analysis, round-trip checks.

This module handles:
- A caller-owned DiagnosticsSession recording coordinates as they move
  through pipeline stages (append-only, cleared explicitly)
- Drift analysis between consecutive stages and first-to-last
- Geohash round-trip error measurement
- Coordinate system sanity reports (ranges, hemispheres, rough region)

Everything here is observational. Nothing in this module changes pipeline
outcomes, and there is no module-level history: every caller passes its
own session.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from geotag.coordinate_validation import estimate_region
from geotag.geohash import decode, encode
from geotag.models import GeoCoordinate, HistoryEntry

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6_371_000
METERS_PER_DEGREE = 111_000


def haversine_distance(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """Great-circle distance between two coordinates in metres."""
    lat1, lat2 = math.radians(a.latitude), math.radians(b.latitude)
    d_lat = math.radians(b.latitude - a.latitude)
    d_lng = math.radians(b.longitude - a.longitude)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class DiagnosticsSession:
    """Append-only coordinate history owned by one caller.

    Example:
        >>> session = DiagnosticsSession()
        >>> _ = session.track("EXIF_EXTRACTION", GeoCoordinate(52.0907, 5.1214), "IMG_1.jpg")
        >>> len(session)
        1
    """

    def __init__(self):
        self._entries: list[HistoryEntry] = []

    def track(
        self,
        stage: str,
        coord: GeoCoordinate,
        source: str = "unknown",
        timestamp: datetime | None = None,
    ) -> HistoryEntry:
        entry = HistoryEntry(
            stage=stage,
            coordinate=coord,
            timestamp=timestamp or datetime.now(),
            source=source,
        )
        self._entries.append(entry)
        logger.debug(
            "Tracked %s: (%.8f, %.8f) from %s",
            stage,
            coord.latitude,
            coord.longitude,
            source,
        )
        return entry

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def track(
    session: DiagnosticsSession,
    stage: str,
    coord: GeoCoordinate,
    source: str = "unknown",
) -> HistoryEntry:
    return session.track(stage, coord, source)


@dataclass(frozen=True)
class DriftStep:
    from_stage: str
    to_stage: str
    lat_delta_deg: float
    lng_delta_deg: float
    lat_delta_m: float
    lng_delta_m: float
    distance_m: float
    elapsed_s: float


@dataclass(frozen=True)
class DriftReport:
    steps: tuple[DriftStep, ...]
    first: HistoryEntry
    last: HistoryEntry
    total_distance_m: float


def analyze_drift(session: DiagnosticsSession) -> DriftReport | None:
    """Measure how far a coordinate moved between consecutive stages.

    Args:
        session: Session whose history is analysed (left untouched).

    Returns:
        DriftReport or None when fewer than two entries were tracked.

    Notes:
        Per-axis metre deltas use the flat approximation of 111 km per
        degree, with longitude scaled by cos(latitude of the later entry).
        distance_m uses the Haversine formula.
    """
    history = session.history
    if len(history) < 2:
        return None

    steps = []
    for prev, curr in zip(history, history[1:]):
        lat_delta = abs(curr.coordinate.latitude - prev.coordinate.latitude)
        lng_delta = abs(curr.coordinate.longitude - prev.coordinate.longitude)
        steps.append(
            DriftStep(
                from_stage=prev.stage,
                to_stage=curr.stage,
                lat_delta_deg=lat_delta,
                lng_delta_deg=lng_delta,
                lat_delta_m=lat_delta * METERS_PER_DEGREE,
                lng_delta_m=lng_delta
                * METERS_PER_DEGREE
                * math.cos(math.radians(curr.coordinate.latitude)),
                distance_m=haversine_distance(prev.coordinate, curr.coordinate),
                elapsed_s=(curr.timestamp - prev.timestamp).total_seconds(),
            )
        )

    first, last = history[0], history[-1]
    return DriftReport(
        steps=tuple(steps),
        first=first,
        last=last,
        total_distance_m=haversine_distance(first.coordinate, last.coordinate),
    )


@dataclass(frozen=True)
class RoundTripResult:
    original: GeoCoordinate
    encoded: str
    decoded: GeoCoordinate
    error_m: float


def round_trip_test(coord: GeoCoordinate, precision: int = 8) -> RoundTripResult:
    """Encode then decode a coordinate and report the positional error."""
    encoded = encode(coord, precision)
    decoded = decode(encoded)
    return RoundTripResult(
        original=coord,
        encoded=encoded,
        decoded=decoded,
        error_m=haversine_distance(coord, decoded),
    )


@dataclass(frozen=True)
class CoordinateSystemReport:
    latitude_valid: bool
    longitude_valid: bool
    lat_hemisphere: str
    lng_hemisphere: str
    region: str


def verify_coordinate_system(coord: GeoCoordinate) -> CoordinateSystemReport:
    lat, lng = coord.latitude, coord.longitude
    return CoordinateSystemReport(
        latitude_valid=-90 <= lat <= 90,
        longitude_valid=-180 <= lng <= 180,
        lat_hemisphere="North" if lat >= 0 else "South",
        lng_hemisphere="East" if lng >= 0 else "West",
        region=estimate_region(coord),
    )
