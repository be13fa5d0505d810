"""Geohash encoding and decoding.

A geohash interleaves longitude and latitude bits (longitude first) produced
by repeatedly halving the coordinate ranges, then packs every 5 bits into a
base32 character. Longer hashes denote smaller cells.

Precision table (character count → approximate accuracy radius):

    1: ±2500 km    6: ±610 m
    2: ±630 km     7: ±76 m
    3: ±78 km      8: ±19 m
    4: ±20 km      9: ±2.4 m
    5: ±2.4 km    10: ±60 cm
"""

from dataclasses import dataclass

from geotag.models import GeoCoordinate

BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
_DECODE_MAP = {char: index for index, char in enumerate(BASE32)}


@dataclass(frozen=True)
class PrecisionLevel:
    precision: int
    accuracy: str
    radius_m: float
    description: str


PRECISION_LEVELS = (
    PrecisionLevel(1, "±2500 km", 2_500_000.0, "Country level"),
    PrecisionLevel(2, "±630 km", 630_000.0, "Large region"),
    PrecisionLevel(3, "±78 km", 78_000.0, "City level"),
    PrecisionLevel(4, "±20 km", 20_000.0, "District level"),
    PrecisionLevel(5, "±2.4 km", 2_400.0, "Neighborhood"),
    PrecisionLevel(6, "±610 m", 610.0, "Village/Town"),
    PrecisionLevel(7, "±76 m", 76.0, "Street level"),
    PrecisionLevel(8, "±19 m", 19.0, "Building level"),
    PrecisionLevel(9, "±2.4 m", 2.4, "Room level"),
    PrecisionLevel(10, "±60 cm", 0.6, "Very precise"),
)

_LEVELS_BY_PRECISION = {level.precision: level for level in PRECISION_LEVELS}


def encode(coordinate: GeoCoordinate, precision: int = 8) -> str:
    """Encode a coordinate as a geohash of exactly `precision` characters.

    Args:
        coordinate: Coordinate within [-90, 90] x [-180, 180].
        precision: Number of base32 characters (>= 1).

    Returns:
        str: Geohash, e.g. encode(GeoCoordinate(57.64911, 10.40744), 11)
        -> 'u4pruydqqvj'

    Raises:
        ValueError: If precision < 1 or the coordinate is out of range.
    """
    if precision < 1:
        raise ValueError(f"Geohash precision must be >= 1, got {precision}")
    if not coordinate.is_in_range():
        raise ValueError(
            f"Cannot encode out-of-range coordinate "
            f"({coordinate.latitude}, {coordinate.longitude})"
        )

    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    bits = 0
    bit_count = 0
    even = True  # longitude bit first

    while len(chars) < precision:
        if even:
            mid = (lon_range[0] + lon_range[1]) / 2
            if coordinate.longitude >= mid:
                bits = (bits << 1) | 1
                lon_range[0] = mid
            else:
                bits <<= 1
                lon_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if coordinate.latitude >= mid:
                bits = (bits << 1) | 1
                lat_range[0] = mid
            else:
                bits <<= 1
                lat_range[1] = mid
        even = not even
        bit_count += 1

        if bit_count == 5:
            chars.append(BASE32[bits])
            bits = 0
            bit_count = 0

    return "".join(chars)


def decode_bounds(geohash: str) -> tuple[float, float, float, float]:
    """Return the cell a geohash denotes as (south, west, north, east).

    Raises:
        ValueError: If the geohash is empty or contains invalid characters.
    """
    if not geohash:
        raise ValueError("Cannot decode an empty geohash")

    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    even = True

    for char in geohash.lower():
        if char not in _DECODE_MAP:
            raise ValueError(f"Invalid geohash character {char!r} in {geohash!r}")
        value = _DECODE_MAP[char]
        for shift in range(4, -1, -1):
            bit = (value >> shift) & 1
            target = lon_range if even else lat_range
            mid = (target[0] + target[1]) / 2
            if bit:
                target[0] = mid
            else:
                target[1] = mid
            even = not even

    return (lat_range[0], lon_range[0], lat_range[1], lon_range[1])


def decode(geohash: str) -> GeoCoordinate:
    """Decode a geohash to the centre point of its cell."""
    south, west, north, east = decode_bounds(geohash)
    return GeoCoordinate((south + north) / 2, (west + east) / 2)


def accuracy_for(precision: int) -> str:
    """Human label for a geohash precision, 'Unknown' outside 1-10."""
    level = _LEVELS_BY_PRECISION.get(precision)
    return level.accuracy if level else "Unknown"


def accuracy_radius_m(precision: int) -> float | None:
    level = _LEVELS_BY_PRECISION.get(precision)
    return level.radius_m if level else None


def precision_info() -> list[PrecisionLevel]:
    return list(PRECISION_LEVELS)
