"""Tests for geohash encoding and decoding.

Tests cover:
- Known reference hashes
- Cell bounds and centre decoding
- Round-trip accuracy against the precision table
- Precision table lookups
- Invalid input handling
"""

import pytest

from geotag.coordinate_verification import haversine_distance
from geotag.geohash import (
    BASE32,
    PRECISION_LEVELS,
    accuracy_for,
    accuracy_radius_m,
    decode,
    decode_bounds,
    encode,
    precision_info,
)
from geotag.models import GeoCoordinate

CITIES = {
    "New York": GeoCoordinate(40.7128, -74.0060),
    "London": GeoCoordinate(51.5074, -0.1278),
    "Tokyo": GeoCoordinate(35.6762, 139.6503),
    "Sydney": GeoCoordinate(-33.8688, 151.2093),
}


class TestEncode:
    def test_reference_hash(self):
        assert encode(GeoCoordinate(57.64911, 10.40744), 11) == "u4pruydqqvj"

    def test_reference_hash_short(self):
        assert encode(GeoCoordinate(42.6, -5.6), 5) == "ezs42"

    def test_default_precision_is_8(self):
        assert len(encode(GeoCoordinate(52.0907, 5.1214))) == 8

    @pytest.mark.parametrize("precision", [1, 5, 8, 12])
    def test_length_matches_precision(self, precision):
        geohash = encode(GeoCoordinate(52.0907, 5.1214), precision)

        assert len(geohash) == precision
        assert set(geohash) <= set(BASE32)

    def test_longer_hash_extends_shorter(self):
        coord = GeoCoordinate(35.6762, 139.6503)

        assert encode(coord, 9).startswith(encode(coord, 5))

    def test_corners_are_encodable(self):
        assert encode(GeoCoordinate(-90, -180), 4) == "0000"
        assert encode(GeoCoordinate(90, 180), 4) == "zzzz"

    @pytest.mark.parametrize("precision", [0, -3])
    def test_invalid_precision(self, precision):
        with pytest.raises(ValueError):
            encode(GeoCoordinate(0, 0), precision)

    def test_out_of_range_coordinate(self):
        with pytest.raises(ValueError):
            encode(GeoCoordinate(95, 40), 5)


class TestDecode:
    def test_first_character_bounds(self):
        assert decode_bounds("u") == (45.0, 0.0, 90.0, 45.0)

    def test_decode_is_cell_centre(self):
        south, west, north, east = decode_bounds("u281z")
        centre = decode("u281z")

        assert centre.latitude == pytest.approx((south + north) / 2)
        assert centre.longitude == pytest.approx((west + east) / 2)

    def test_decode_reference_hash(self):
        coord = decode("u4pruydqqvj")

        assert coord.latitude == pytest.approx(57.64911, abs=1e-5)
        assert coord.longitude == pytest.approx(10.40744, abs=1e-5)

    def test_decode_is_case_insensitive(self):
        assert decode("U281Z") == decode("u281z")

    def test_empty_geohash(self):
        with pytest.raises(ValueError):
            decode("")

    @pytest.mark.parametrize("geohash", ["u28a", "u28i", "u28l", "u28o", "u2 8"])
    def test_invalid_characters(self, geohash):
        with pytest.raises(ValueError):
            decode(geohash)


class TestRoundTrip:
    @pytest.mark.parametrize("name", sorted(CITIES))
    def test_precision_8_within_20_meters(self, name):
        coord = CITIES[name]

        error = haversine_distance(coord, decode(encode(coord, 8)))

        assert error < 20

    @pytest.mark.parametrize("precision", range(1, 11))
    def test_point_lies_in_its_cell(self, precision):
        coord = CITIES["Sydney"]
        south, west, north, east = decode_bounds(encode(coord, precision))

        assert south <= coord.latitude <= north
        assert west <= coord.longitude <= east

    @pytest.mark.parametrize("precision", range(1, 11))
    def test_error_bounded_by_accuracy_radius(self, precision):
        """The nominal radius is approximate; the cell half-diagonal may exceed it."""
        coord = CITIES["London"]

        error = haversine_distance(coord, decode(encode(coord, precision)))

        assert error <= 1.5 * accuracy_radius_m(precision)

    def test_cell_corner_can_exceed_nominal_radius(self):
        """Near a cell corner the error is the half-diagonal, not the half-width."""
        coord = GeoCoordinate(0.00001, 0.00001)

        error = haversine_distance(coord, decode(encode(coord, 8)))

        assert accuracy_radius_m(8) < error <= 1.5 * accuracy_radius_m(8)

    def test_decode_then_encode_is_stable(self):
        assert encode(decode("u281z"), 5) == "u281z"


class TestPrecisionTable:
    def test_known_labels(self):
        assert accuracy_for(5) == "±2.4 km"
        assert accuracy_for(6) == "±610 m"
        assert accuracy_for(8) == "±19 m"

    @pytest.mark.parametrize("precision", [0, 11, 12, -1])
    def test_unknown_outside_table(self, precision):
        assert accuracy_for(precision) == "Unknown"
        assert accuracy_radius_m(precision) is None

    def test_precision_info_lists_every_level(self):
        levels = precision_info()

        assert [level.precision for level in levels] == list(range(1, 11))
        assert levels[7].description == "Building level"

    def test_radius_shrinks_with_precision(self):
        radii = [level.radius_m for level in PRECISION_LEVELS]

        assert radii == sorted(radii, reverse=True)
