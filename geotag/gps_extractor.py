"""GPS coordinate extraction from photo bytes.

This module handles:
- Deciding whether a file can carry EXIF at all (type allow-list + size)
- Three ordered parse strategies over the same bytes, first success wins:
    1. merged   - Pillow EXIF, all IFDs merged, keys translated, GPS revived
                  to decimal latitude/longitude
    2. raw      - legacy flat EXIF dict, GPS fields lifted to top level with
                  their raw DMS values and hemisphere references
    3. full     - unfiltered dump of every IFD with a nested GPS block
- DMS -> decimal conversion tolerant of the shapes cameras actually write
- Support for HEIC/HEIF through pillow-heif (the optional "heic" extra)

Separation of concerns:
- Pure extraction logic - returns GeoCoordinate or None, never raises for
  malformed metadata (absence of GPS is a normal outcome)
- No user-facing output - debug logging only; orchestration reports
"""

import io
import logging
import numbers
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from PIL import ExifTags, Image

from geotag.coordinate_validation import classify_reasonableness, validate
from geotag.coordinate_verification import DiagnosticsSession
from geotag.models import GeoCoordinate, PhotoPayload

try:
    from pillow_heif import register_heif_opener
except ImportError:  # "heic" extra not installed; HEIC files fail to open
    register_heif_opener = None

# Register HEIC support (single registration for entire module)
if register_heif_opener is not None:
    register_heif_opener()

logger = logging.getLogger(__name__)

MIN_EXIF_BYTES = 1024

EXIF_CONTENT_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/tiff",
        "image/tif",
        "image/heic",
        "image/heif",
    }
)
EXIF_EXTENSIONS = (".jpg", ".jpeg", ".tif", ".tiff", ".heic", ".heif")

GPS_IFD = ExifTags.IFD.GPSInfo  # 34853
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4
GPS_ALTITUDE_REF = 5
GPS_ALTITUDE = 6


def has_exif_type(name: str = "", content_type: str = "") -> bool:
    """True if the MIME type or the file extension is on the EXIF allow-list."""
    return (content_type or "").lower() in EXIF_CONTENT_TYPES or (
        name or ""
    ).lower().endswith(EXIF_EXTENSIONS)


def can_contain_exif(
    name: str = "",
    content_type: str = "",
    size: int = 0,
    min_bytes: int = MIN_EXIF_BYTES,
) -> bool:
    """Check whether a file is worth parsing for EXIF GPS data.

    Args:
        name: File name or URL path (extension is checked).
        content_type: Declared MIME type.
        size: File size in bytes.
        min_bytes: Files this small or smaller are skipped.

    Returns:
        bool: True if the type/extension is on the allow-list and the file
        is larger than min_bytes.
    """
    return has_exif_type(name, content_type) and size > min_bytes


# ============================================================================
# Value helpers
# ============================================================================


def _to_float(value) -> float:
    # (numerator, denominator) pairs come from legacy readers
    if isinstance(value, (tuple, list)) and len(value) == 2:
        numerator, denominator = value
        return float(numerator) / float(denominator)
    return float(value)


def convert_to_degrees(dms) -> float:
    """Convert GPS DMS (degrees, minutes, seconds) to decimal degrees.

    Args:
        dms: (degrees, minutes, seconds) - e.g., (37, 50, 4.8). A bare number
            is treated as already decimal; missing minutes/seconds count as 0.
            Elements may be floats, IFDRational or (num, den) pairs.

    Returns:
        float: Decimal degrees - e.g., 37.834667

    Raises:
        ValueError: If dms is empty or has more than three parts.
    """
    if isinstance(dms, numbers.Real):
        return float(dms)
    parts = [_to_float(part) for part in dms]
    if not 1 <= len(parts) <= 3:
        raise ValueError(f"Expected 1-3 DMS components, got {len(parts)}")
    degrees, minutes, seconds = (parts + [0.0, 0.0])[:3]
    return degrees + (minutes / 60.0) + (seconds / 3600.0)


def _normalize_ref(ref) -> str:
    if isinstance(ref, bytes):
        ref = ref.decode("ascii", errors="ignore")
    return str(ref or "").strip("\x00 ").upper()


def _signed(value: float, ref, negative: str) -> float:
    return -value if _normalize_ref(ref) == negative else value


def _is_number(value) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


# ============================================================================
# Parsers: bytes -> metadata dict in one shape
# ============================================================================


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def _translated(ifd: dict, names: dict) -> dict:
    return {names.get(tag, tag): value for tag, value in ifd.items()}


def _parse_merged(img: Image.Image) -> dict:
    """All IFDs merged into one dict, GPS revived to decimal degrees."""
    exif = img.getexif()
    merged = _translated(exif, ExifTags.TAGS)
    merged.update(_translated(exif.get_ifd(ExifTags.IFD.Exif), ExifTags.TAGS))
    gps = _translated(exif.get_ifd(GPS_IFD), ExifTags.GPSTAGS)
    merged.update(gps)

    lat_dms, lon_dms = gps.get("GPSLatitude"), gps.get("GPSLongitude")
    # Revival is strict: full three-part DMS and explicit references only
    if (
        isinstance(lat_dms, tuple)
        and isinstance(lon_dms, tuple)
        and len(lat_dms) == len(lon_dms) == 3
        and _normalize_ref(gps.get("GPSLatitudeRef")) in ("N", "S")
        and _normalize_ref(gps.get("GPSLongitudeRef")) in ("E", "W")
    ):
        merged["latitude"] = _signed(
            convert_to_degrees(lat_dms), gps["GPSLatitudeRef"], "S"
        )
        merged["longitude"] = _signed(
            convert_to_degrees(lon_dms), gps["GPSLongitudeRef"], "W"
        )
    return merged


def _parse_raw(img: Image.Image) -> dict:
    """Legacy flat EXIF dict with GPS fields lifted to the top level.

    Values stay exactly as the reader produced them (rationals, pairs,
    bytes references). Formats without the legacy reader fall back to the
    GPS IFD of the modern one.
    """
    legacy = getattr(img, "_getexif", None)
    raw = dict(legacy() or {}) if legacy else {}
    gps = raw.get(GPS_IFD)
    if not isinstance(gps, dict):
        gps = dict(img.getexif().get_ifd(GPS_IFD))
    raw.update(_translated(gps, ExifTags.GPSTAGS))
    return raw


def _parse_full(img: Image.Image) -> dict:
    """Every IFD of the embedded EXIF blob, nested and unfiltered."""
    exif = Image.Exif()
    blob = img.info.get("exif")
    if blob:
        exif.load(blob)
    else:
        exif = img.getexif()

    dump = {"IFD0": dict(exif)}
    for ifd in ExifTags.IFD:
        try:
            block = exif.get_ifd(ifd)
        except (KeyError, ValueError, TypeError, OSError):
            continue
        if block:
            dump[ifd.name] = dict(block)

    gps_block = dump.get(ExifTags.IFD.GPSInfo.name)
    if gps_block is None and isinstance(dump["IFD0"].get(GPS_IFD), dict):
        gps_block = dump["IFD0"][GPS_IFD]
    if gps_block is not None:
        dump["GPS"] = gps_block
    return dump


# ============================================================================
# Readers: metadata dict in one shape -> coordinate
# ============================================================================


def _read_decimal_pair(metadata: dict) -> GeoCoordinate | None:
    latitude = metadata.get("latitude")
    longitude = metadata.get("longitude")
    if _is_number(latitude) and _is_number(longitude):
        return GeoCoordinate(float(latitude), float(longitude))
    return None


def _read_dms_fields(fields: dict, keys: tuple) -> GeoCoordinate | None:
    lat_key, lat_ref_key, lon_key, lon_ref_key = keys
    lat_dms, lon_dms = fields.get(lat_key), fields.get(lon_key)
    if lat_dms is None or lon_dms is None:
        return None
    latitude = _signed(convert_to_degrees(lat_dms), fields.get(lat_ref_key), "S")
    longitude = _signed(convert_to_degrees(lon_dms), fields.get(lon_ref_key), "W")
    return GeoCoordinate(latitude, longitude)


_NAMED_KEYS = ("GPSLatitude", "GPSLatitudeRef", "GPSLongitude", "GPSLongitudeRef")
_NUMERIC_KEYS = (GPS_LATITUDE, GPS_LATITUDE_REF, GPS_LONGITUDE, GPS_LONGITUDE_REF)


def _read_top_level_dms(metadata: dict) -> GeoCoordinate | None:
    return _read_dms_fields(metadata, _NAMED_KEYS)


def _read_gps_block(metadata: dict) -> GeoCoordinate | None:
    block = metadata.get("GPS")
    if not isinstance(block, dict):
        return None
    return _read_dms_fields(block, _NAMED_KEYS) or _read_dms_fields(
        block, _NUMERIC_KEYS
    )


@dataclass(frozen=True)
class ExtractionStrategy:
    name: str
    parse: Callable[[Image.Image], dict]
    read: Callable[[dict], GeoCoordinate | None]

    def attempt(self, data: bytes) -> GeoCoordinate | None:
        """Run one independent parse over the bytes.

        Returns None for any parse failure, missing GPS or a coordinate
        that fails the range check.
        """
        try:
            with _open(data) as img:
                coord = self.read(self.parse(img))
        except Exception as e:
            logger.debug("Strategy %s failed: %s", self.name, e)
            return None

        if coord is None:
            return None
        if not validate(coord).is_valid:
            logger.debug("Strategy %s produced out-of-range %s", self.name, coord)
            return None
        return coord


STRATEGIES = (
    ExtractionStrategy("merged", _parse_merged, _read_decimal_pair),
    ExtractionStrategy("raw", _parse_raw, _read_top_level_dms),
    ExtractionStrategy("full", _parse_full, _read_gps_block),
)


# ============================================================================
# Public API
# ============================================================================


def extract(
    data: bytes,
    declared_type: str = "",
    name: str = "",
    min_bytes: int = MIN_EXIF_BYTES,
    session: DiagnosticsSession | None = None,
) -> GeoCoordinate | None:
    """Extract a decimal GPS coordinate from raw photo bytes.

    Args:
        data: Raw file bytes.
        declared_type: MIME type declared by the uploader or server.
        name: File name or URL (used for the extension check).
        min_bytes: Minimum size for a file to be considered.
        session: Optional diagnostics session; successful extractions are
            tracked under the EXIF_EXTRACTION stage.

    Returns:
        GeoCoordinate or None if the file cannot carry EXIF or no strategy
        finds an in-range GPS pair.
    """
    if not can_contain_exif(name, declared_type, len(data), min_bytes):
        logger.debug("Skipping %s (%s, %d bytes)", name, declared_type, len(data))
        return None

    coord = next(
        (
            found
            for found in (strategy.attempt(data) for strategy in STRATEGIES)
            if found is not None
        ),
        None,
    )
    if coord is None:
        return None

    validation = validate(coord)
    if validation.issues:
        logger.info(
            "Coordinate issues in %s: %s",
            name,
            ", ".join(issue.kind.value for issue in validation.issues),
        )
    reasonableness = classify_reasonableness(coord)
    if not reasonableness.reasonable:
        logger.info("Unusual location in %s: %s", name, "; ".join(reasonableness.issues))

    if session is not None:
        session.track("EXIF_EXTRACTION", coord, f"{name} ({declared_type})")
    return coord


def extract_from_payload(
    payload: PhotoPayload,
    min_bytes: int = MIN_EXIF_BYTES,
    session: DiagnosticsSession | None = None,
) -> GeoCoordinate | None:
    return extract(payload.data, payload.content_type, payload.name, min_bytes, session)


def extract_altitude(data: bytes) -> float | None:
    """Altitude in metres from the GPS IFD (negative below sea level)."""
    try:
        with _open(data) as img:
            gps = img.getexif().get_ifd(GPS_IFD)
    except Exception:
        return None

    altitude = gps.get(GPS_ALTITUDE)
    if altitude is None:
        return None
    try:
        altitude = _to_float(altitude)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    ref = gps.get(GPS_ALTITUDE_REF)
    if ref in (1, b"\x01"):
        altitude = -altitude
    return altitude


def extract_gps_coords(image_path):
    """Extract GPS coordinates from an image file on disk.

    Args:
        image_path: Path to image file

    Returns:
        tuple: (latitude, longitude, altitude) or None if no GPS data
    """
    try:
        path = Path(image_path)
        data = path.read_bytes()
    except (OSError, ValueError):
        return None

    coord = extract(data, name=path.name)
    if coord is None:
        return None
    return (coord.latitude, coord.longitude, extract_altitude(data))
