"""Coordinate validation and correction heuristics.

This module handles:
- Range validation (the only check that makes a coordinate invalid)
- Advisory heuristics: swapped axes, low precision, hemisphere mistakes
- Ranked alternative interpretations of a suspicious coordinate
- Coarse land/ocean/polar classification

Separation of concerns:
- Pure functions over GeoCoordinate values - no I/O, no logging
- Callers decide whether an advisory issue blocks anything

The ocean bounding boxes and suggestion confidences are rough, uncalibrated
heuristics. They are not backed by a land/ocean dataset and must not be
treated as authoritative geodata.
"""

import math
from decimal import Decimal

from geotag.models import (
    CorrectionSuggestion,
    GeoCoordinate,
    IssueKind,
    LocationKind,
    ReasonablenessResult,
    ValidationIssue,
    ValidationResult,
)

MIN_DECIMAL_PLACES = 4
POLAR_LATITUDE = 80

SWAP_CONFIDENCE_INDICATED = 0.9
SWAP_CONFIDENCE_SPECULATIVE = 0.3
NEGATE_SINGLE_CONFIDENCE = 0.2
NEGATE_BOTH_CONFIDENCE = 0.1

# (min_lat, max_lat, min_lng, max_lng, excluded(lat, lng)) per ocean
OCEAN_BOXES = (
    ("Pacific", -60, 60, -180, -120, lambda lat, lng: lat > 30 and lng > -130),
    ("Atlantic", -60, 60, -60, 20, lambda lat, lng: lat > 0 and lng > -20),
    ("Indian", -60, 30, 20, 120, lambda lat, lng: False),
)

# (name, min_lat, max_lat, min_lng, max_lng), first match wins
REGIONS = (
    ("Continental US", 24, 50, -125, -66),
    ("Canada", 49, 60, -141, -52),
    ("Europe", 35, 71, -10, 40),
    ("Australia", -44, -10, 113, 154),
    ("Japan", 20, 46, 122, 146),
)


def _decimal_places(value: float) -> int:
    """Count decimal digits in the shortest representation of a number.

    Examples:
        52.0907 -> 4, 5.0 -> 0, 1e-05 -> 5
    """
    if not math.isfinite(value):
        return 0
    exponent = Decimal(repr(value)).normalize().as_tuple().exponent
    return max(0, -exponent)


def _latitude_in_range(lat: float) -> bool:
    return -90 <= lat <= 90


def _longitude_in_range(lng: float) -> bool:
    return -180 <= lng <= 180


def _looks_swapped(lat: float, lng: float) -> bool:
    return abs(lng) <= 90 and abs(lat) <= 180 and (abs(lat) > 90 or abs(lng) > 90)


def validate(coord: GeoCoordinate) -> ValidationResult:
    """Validate a coordinate and report common data-entry issues.

    Args:
        coord: Coordinate to check. May be out of range.

    Returns:
        ValidationResult: is_valid is False only when an INVALID_RANGE issue
        is present. `corrected` carries the swapped coordinate when a swap
        is suspected.

    Example:
        >>> result = validate(GeoCoordinate(95, 40))
        >>> [issue.kind.value for issue in result.issues]
        ['invalid_range', 'swap', 'precision_loss']
        >>> result.corrected
        GeoCoordinate(latitude=40, longitude=95)
    """
    lat, lng = coord.latitude, coord.longitude
    issues = []
    corrected = None

    if not _latitude_in_range(lat):
        issues.append(
            ValidationIssue(
                IssueKind.INVALID_RANGE,
                f"Latitude {lat} is outside valid range (-90 to 90)",
            )
        )
    if not _longitude_in_range(lng):
        issues.append(
            ValidationIssue(
                IssueKind.INVALID_RANGE,
                f"Longitude {lng} is outside valid range (-180 to 180)",
            )
        )

    if _looks_swapped(lat, lng):
        corrected = GeoCoordinate(lng, lat)
        issues.append(
            ValidationIssue(
                IssueKind.SWAP,
                "Coordinates may be swapped (lat/lng reversed)",
                suggested_fix=corrected,
            )
        )

    lat_places = _decimal_places(lat)
    lng_places = _decimal_places(lng)
    if lat_places < MIN_DECIMAL_PLACES or lng_places < MIN_DECIMAL_PLACES:
        issues.append(
            ValidationIssue(
                IssueKind.PRECISION_LOSS,
                f"Low precision coordinates (lat: {lat_places} decimals, "
                f"lng: {lng_places} decimals). May cause location inaccuracy.",
            )
        )

    # Near (0, 0) usually means a dropped N/S/E/W reference, not a real spot
    if abs(lat) < 1 and abs(lng) < 1 and (lat != 0 or lng != 0):
        issues.append(
            ValidationIssue(
                IssueKind.HEMISPHERE_ERROR,
                "Coordinates very close to 0,0. Check if hemisphere "
                "references (N/S/E/W) are correct.",
            )
        )

    is_valid = not any(issue.kind == IssueKind.INVALID_RANGE for issue in issues)
    return ValidationResult(is_valid=is_valid, issues=tuple(issues), corrected=corrected)


def suggest_corrections(coord: GeoCoordinate) -> list[CorrectionSuggestion]:
    """Propose alternative interpretations of a coordinate, best first.

    The swap suggestion scores high only when the latitude is out of range
    and swapping would bring both axes back in range.
    """
    lat, lng = coord.latitude, coord.longitude
    swapped = GeoCoordinate(lng, lat)
    swap_indicated = abs(lat) > 90 and swapped.is_in_range()

    suggestions = [
        CorrectionSuggestion(
            "swap",
            swapped,
            "Swap latitude and longitude",
            SWAP_CONFIDENCE_INDICATED if swap_indicated else SWAP_CONFIDENCE_SPECULATIVE,
        ),
        CorrectionSuggestion(
            "negate_lat",
            GeoCoordinate(-lat, lng),
            "Negate latitude (opposite hemisphere)",
            NEGATE_SINGLE_CONFIDENCE,
        ),
        CorrectionSuggestion(
            "negate_lng",
            GeoCoordinate(lat, -lng),
            "Negate longitude (opposite hemisphere)",
            NEGATE_SINGLE_CONFIDENCE,
        ),
        CorrectionSuggestion(
            "negate_both",
            GeoCoordinate(-lat, -lng),
            "Negate both coordinates",
            NEGATE_BOTH_CONFIDENCE,
        ),
    ]
    return sorted(suggestions, key=lambda s: s.confidence, reverse=True)


def is_likely_ocean(coord: GeoCoordinate) -> bool:
    lat, lng = coord.latitude, coord.longitude
    return any(
        min_lat < lat < max_lat and min_lng < lng < max_lng and not excluded(lat, lng)
        for _, min_lat, max_lat, min_lng, max_lng, excluded in OCEAN_BOXES
    )


def classify_reasonableness(coord: GeoCoordinate) -> ReasonablenessResult:
    """Judge whether a coordinate is a plausible place to take a photo."""
    lat, lng = coord.latitude, coord.longitude
    issues = []

    if not coord.is_in_range():
        issues.append("Coordinates are outside the valid range")
        kind = LocationKind.UNKNOWN
    elif abs(lat) > POLAR_LATITUDE:
        issues.append("Location is in polar region (very unlikely for user photos)")
        kind = LocationKind.POLAR
    elif is_likely_ocean(coord):
        issues.append("Location appears to be in ocean (unusual for user photos)")
        kind = LocationKind.OCEAN
    else:
        kind = LocationKind.LAND

    if lat == 0 and lng == 0:
        issues.append("Coordinates are exactly 0,0 (Null Island) - likely a GPS error")

    return ReasonablenessResult(reasonable=not issues, issues=tuple(issues), kind=kind)


def estimate_region(coord: GeoCoordinate) -> str:
    """Very rough region name for a coordinate, 'Unknown' if none matches."""
    if not coord.is_in_range():
        return "Unknown"
    for name, min_lat, max_lat, min_lng, max_lng in REGIONS:
        if min_lat < coord.latitude < max_lat and min_lng < coord.longitude < max_lng:
            return name
    return "Unknown"
