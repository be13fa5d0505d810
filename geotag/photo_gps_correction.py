"""Photo GPS correction of low-precision location markers.

This module handles:
- Finding stored markers whose geohash is too short to be useful
- Collecting the photo references attached to each record
- Recovering an exact coordinate from the first photo that carries GPS
- Scoring how trustworthy the recovered correction is
- Applying only corrections that clear the confidence threshold
- Summary statistics for an admin review step

Lifecycle of one candidate marker:

    Identified -> (photo fetch) -> ExtractedOk | ExtractedNone | FetchFailed
               -> ComputedCorrection | Rejected -> Applied | Discarded

Photos are tried strictly one at a time and the first success stops the
search; batches run markers sequentially in ascending precision order. A
failure on one photo or one marker never aborts the rest.

The confidence constants below are coarse heuristics carried over as-is.
They are not calibrated against ground truth and are safe to tune.
"""

import enum
import logging
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from contextlib import aclosing
from dataclasses import dataclass, field, replace

from geotag.coordinate_verification import DiagnosticsSession, haversine_distance
from geotag.geohash import decode, encode
from geotag.gps_extractor import MIN_EXIF_BYTES, extract_from_payload, has_exif_type
from geotag.models import Correction, GeoCoordinate, PhotoPayload, PrecisionMarker
from geotag.photo_fetcher import FetchError, PhotoFetcher

logger = logging.getLogger(__name__)

DEFAULT_PRECISION_THRESHOLD = 6
DEFAULT_TARGET_PRECISION = 8
DEFAULT_MAX_CORRECTIONS = 10
DEFAULT_APPLY_THRESHOLD = 0.5
DEFAULT_HIGH_CONFIDENCE = 0.7

PRECISION_GAIN_DIVISOR = 5
# (distance above which the factor applies in metres, factor), checked in order
DISTANCE_PENALTIES = ((10_000, 0.3), (1_000, 0.6), (100, 0.8))
CLOSE_MATCH_METERS = 50
CLOSE_MATCH_MIN_GAIN = 2
CLOSE_MATCH_BOOST = 1.2

IMAGE_URL_PATTERN = re.compile(
    r"https?://[^\s]+\.(?:jpg|jpeg|png|gif|webp|heic|heif)", re.IGNORECASE
)
IMETA_URL_PATTERN = re.compile(r"url\s+(\S+)")

# Downloads with no recognisable type are parsed as if they were JPEGs
FALLBACK_PHOTO_NAME = "photo.jpg"


class AttemptOutcome(str, enum.Enum):
    EXTRACTED_OK = "extracted_ok"
    EXTRACTED_NONE = "extracted_none"
    FETCH_FAILED = "fetch_failed"


# ============================================================================
# Identification
# ============================================================================


def _tags(record: Mapping) -> list:
    return [tag for tag in record.get("tags") or [] if tag]


def _tag_value(record: Mapping, name: str) -> str | None:
    return next(
        (tag[1] for tag in _tags(record) if tag[0] == name and len(tag) > 1), None
    )


def _as_list(value) -> list:
    if isinstance(value, str):
        return [value]
    return list(value or [])


def _dedupe(refs: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(ref for ref in refs if ref))


def collect_photo_refs(record: Mapping) -> tuple[str, ...]:
    """Collect every photo reference attached to a stored record.

    Sources, in order:
        1. Explicit image fields: `image` tags, `images`/`photo_refs` lists
        2. Structured metadata: `imeta` tags carrying `url <ref>` entries
        3. Image URLs found in the free-text `content`

    Returns:
        tuple: Unique references in first-seen order.
    """
    refs = []

    refs.extend(tag[1] for tag in _tags(record) if tag[0] == "image" and len(tag) > 1)
    for key in ("images", "photo_refs"):
        refs.extend(_as_list(record.get(key)))

    for tag in _tags(record):
        if tag[0] != "imeta":
            continue
        for entry in tag[1:]:
            if match := IMETA_URL_PATTERN.match(entry):
                refs.append(match.group(1))
                break

    content = record.get("content") or ""
    refs.extend(match.group(0) for match in IMAGE_URL_PATTERN.finditer(content))

    return _dedupe(refs)


def marker_from_record(record) -> PrecisionMarker | None:
    """Build a PrecisionMarker from a stored record.

    Accepts PrecisionMarker instances unchanged, event-style records
    ({"id", "tags": [["g", geohash], ...], "content"}) and flat records
    ({"id", "geohash", "photo_refs"}).

    Returns:
        PrecisionMarker or None if the record has no decodable geohash.
    """
    if isinstance(record, PrecisionMarker):
        return record

    geohash = record.get("geohash") or _tag_value(record, "g")
    if not geohash:
        return None
    try:
        decode(geohash)
    except ValueError:
        logger.warning("Skipping record %s: invalid geohash %r", record.get("id"), geohash)
        return None

    return PrecisionMarker(
        id=str(record.get("id", "")),
        geohash=geohash,
        photo_refs=collect_photo_refs(record),
    )


def identify_low_precision_markers(
    records: Iterable, precision_threshold: int = DEFAULT_PRECISION_THRESHOLD
) -> list[PrecisionMarker]:
    """Find markers whose geohash is shorter than precision_threshold."""
    markers = [
        marker
        for marker in (marker_from_record(record) for record in records)
        if marker is not None and marker.precision < precision_threshold
    ]
    logger.info(
        "Found %d low precision markers (precision < %d), %d with photos",
        len(markers),
        precision_threshold,
        sum(1 for marker in markers if marker.has_photos),
    )
    return markers


# ============================================================================
# Correction
# ============================================================================


def correction_confidence(
    original_precision: int, target_precision: int, distance_m: float
) -> float:
    """Score a correction between 0 and 1.

    Starts from the precision gain (5 levels = full confidence), penalises
    large moves and rewards small moves that still gain at least two levels.
    """
    gain = target_precision - original_precision
    confidence = min(max(gain / PRECISION_GAIN_DIVISOR, 0.0), 1.0)

    for threshold, factor in DISTANCE_PENALTIES:
        if distance_m > threshold:
            confidence *= factor
            break

    if distance_m < CLOSE_MATCH_METERS and gain >= CLOSE_MATCH_MIN_GAIN:
        confidence = min(confidence * CLOSE_MATCH_BOOST, 1.0)

    return max(0.0, min(1.0, confidence))


def _with_photo_name(payload: PhotoPayload) -> PhotoPayload:
    """Name an untyped download photo.jpg so only the size gate applies."""
    if has_exif_type(payload.name, payload.content_type):
        return payload
    return replace(payload, name=FALLBACK_PHOTO_NAME)


async def _try_photo(
    ref: str, fetch: PhotoFetcher, min_bytes: int
) -> tuple[AttemptOutcome, GeoCoordinate | None]:
    try:
        payload = await fetch(ref)
    except FetchError as e:
        logger.warning("%s", e)
        return AttemptOutcome.FETCH_FAILED, None
    except Exception as e:
        logger.warning("Unexpected error fetching %s: %s", ref, e)
        return AttemptOutcome.FETCH_FAILED, None

    coord = extract_from_payload(_with_photo_name(payload), min_bytes=min_bytes)
    if coord is None:
        logger.info("No GPS data found in photo: %s", ref)
        return AttemptOutcome.EXTRACTED_NONE, None
    return AttemptOutcome.EXTRACTED_OK, coord


async def _recovered_coordinates(marker: PrecisionMarker, fetch: PhotoFetcher, min_bytes: int):
    """Yield (ref, coordinate) for photos with GPS, fetching lazily in order."""
    for ref in marker.photo_refs:
        outcome, coord = await _try_photo(ref, fetch, min_bytes)
        logger.debug("Marker %s photo %s: %s", marker.id, ref, outcome.value)
        if outcome is AttemptOutcome.EXTRACTED_OK:
            yield ref, coord


async def correct_marker(
    marker: PrecisionMarker,
    fetch: PhotoFetcher,
    target_precision: int = DEFAULT_TARGET_PRECISION,
    session: DiagnosticsSession | None = None,
    min_bytes: int = MIN_EXIF_BYTES,
) -> Correction | None:
    """Recover a precise location for a marker from its photos.

    Args:
        marker: Marker to correct.
        fetch: Async callable returning a PhotoPayload for a reference.
        target_precision: Geohash length of the corrected location.
        session: Optional diagnostics session for coordinate tracking.
        min_bytes: Minimum photo size considered for EXIF parsing.

    Returns:
        Correction from the first photo with usable GPS, or None if every
        reference failed to fetch or carried no GPS.
    """
    if not marker.has_photos:
        logger.info("No photos available for marker %s", marker.id)
        return None

    async with aclosing(_recovered_coordinates(marker, fetch, min_bytes)) as found:
        async for ref, recovered in found:
            return _build_correction(marker, ref, recovered, target_precision, session)

    logger.info("No GPS data could be extracted from any photos for marker %s", marker.id)
    return None


def _build_correction(
    marker: PrecisionMarker,
    ref: str,
    recovered: GeoCoordinate,
    target_precision: int,
    session: DiagnosticsSession | None,
) -> Correction:
    original = marker.coordinate
    distance = haversine_distance(original, recovered)

    if session is not None:
        session.track("ORIGINAL_MARKER", original, f"Low precision marker ({marker.precision})")
        session.track("PHOTO_GPS_EXTRACTED", recovered, f"Photo: {ref}")
        session.track("CORRECTED_MARKER", recovered, f"Corrected with precision {target_precision}")

    correction = Correction(
        marker_id=marker.id,
        original_geohash=marker.geohash,
        original_precision=marker.precision,
        original_coordinate=original,
        recovered_coordinate=recovered,
        corrected_geohash=encode(recovered, target_precision),
        corrected_precision=target_precision,
        distance_meters=distance,
        confidence=correction_confidence(marker.precision, target_precision, distance),
        photo_source=ref,
    )
    logger.info(
        "Corrected marker %s: %.2fm, precision %d -> %d, confidence %.1f%%",
        marker.id,
        distance,
        marker.precision,
        target_precision,
        correction.confidence * 100,
    )
    return correction


async def batch_correct(
    markers: Iterable[PrecisionMarker],
    fetch: PhotoFetcher,
    max_corrections: int = DEFAULT_MAX_CORRECTIONS,
    target_precision: int = DEFAULT_TARGET_PRECISION,
    session: DiagnosticsSession | None = None,
    min_bytes: int = MIN_EXIF_BYTES,
) -> list[Correction]:
    """Correct up to max_corrections markers, worst precision first.

    Markers without photos are skipped. Any error while correcting one
    marker is logged and the batch moves on; the result may be empty but
    the call always returns.
    """
    candidates = sorted(
        (marker for marker in markers if marker.has_photos),
        key=lambda marker: marker.precision,
    )[: max(max_corrections, 0)]
    logger.info("Processing %d markers with photos", len(candidates))

    corrections = []
    for marker in candidates:
        try:
            correction = await correct_marker(
                marker, fetch, target_precision, session, min_bytes
            )
        except Exception as e:
            logger.error("Error correcting marker %s: %s", marker.id, e)
            continue
        if correction is not None:
            corrections.append(correction)

    logger.info("Successfully corrected %d markers using photo GPS data", len(corrections))
    return corrections


# ============================================================================
# Application and statistics
# ============================================================================


def apply_corrections(
    markers: Iterable[PrecisionMarker],
    corrections: Iterable[Correction],
    threshold: float = DEFAULT_APPLY_THRESHOLD,
) -> list[PrecisionMarker]:
    """Apply corrections whose confidence exceeds threshold.

    The marker's geohash is replaced by the corrected geohash, which in turn
    updates its precision, coordinate and accuracy label. Markers without a
    qualifying correction are returned unchanged. Applying the same
    corrections again yields the same markers.
    """
    by_marker = {correction.marker_id: correction for correction in corrections}
    updated = []
    for marker in markers:
        correction = by_marker.get(marker.id)
        if correction is not None and correction.confidence > threshold:
            marker = replace(
                marker,
                geohash=correction.corrected_geohash,
                corrected=True,
                correction_confidence=correction.confidence,
            )
        updated.append(marker)
    return updated


@dataclass(frozen=True)
class CorrectionStats:
    count: int = 0
    mean_distance: float = 0.0
    mean_confidence: float = 0.0
    precision_histogram: dict[str, int] = field(default_factory=dict)
    high_confidence_count: int = 0


def correction_stats(
    corrections: Iterable[Correction], high_confidence: float = DEFAULT_HIGH_CONFIDENCE
) -> CorrectionStats:
    corrections = list(corrections)
    if not corrections:
        return CorrectionStats()

    count = len(corrections)
    histogram = Counter(
        f"{c.original_precision}→{c.corrected_precision}" for c in corrections
    )
    return CorrectionStats(
        count=count,
        mean_distance=sum(c.distance_meters for c in corrections) / count,
        mean_confidence=sum(c.confidence for c in corrections) / count,
        precision_histogram=dict(histogram),
        high_confidence_count=sum(1 for c in corrections if c.confidence > high_confidence),
    )


# ============================================================================
# Configured facade
# ============================================================================


class PhotoGpsCorrector:
    """The correction pipeline bound to a fetcher and configuration.

    Example:
        >>> corrector = PhotoGpsCorrector.from_config(load_config(), fetch)
        >>> markers = corrector.identify(records)
        >>> corrections = await corrector.batch_correct(markers)
        >>> updated = corrector.apply(markers, corrections)
    """

    def __init__(
        self,
        fetch: PhotoFetcher,
        precision_threshold: int = DEFAULT_PRECISION_THRESHOLD,
        target_precision: int = DEFAULT_TARGET_PRECISION,
        max_corrections: int = DEFAULT_MAX_CORRECTIONS,
        apply_threshold: float = DEFAULT_APPLY_THRESHOLD,
        high_confidence_threshold: float = DEFAULT_HIGH_CONFIDENCE,
        min_exif_bytes: int = MIN_EXIF_BYTES,
        session: DiagnosticsSession | None = None,
    ):
        self.fetch = fetch
        self.precision_threshold = precision_threshold
        self.target_precision = target_precision
        self.max_corrections = max_corrections
        self.apply_threshold = apply_threshold
        self.high_confidence_threshold = high_confidence_threshold
        self.min_exif_bytes = min_exif_bytes
        self.session = session

    @classmethod
    def from_config(
        cls,
        config: dict,
        fetch: PhotoFetcher,
        session: DiagnosticsSession | None = None,
    ) -> "PhotoGpsCorrector":
        correction = config["correction"]
        return cls(
            fetch,
            precision_threshold=correction["precision_threshold"],
            target_precision=correction["target_precision"],
            max_corrections=correction["max_corrections"],
            apply_threshold=correction["apply_threshold"],
            high_confidence_threshold=correction["high_confidence_threshold"],
            min_exif_bytes=config["extraction"]["min_exif_bytes"],
            session=session,
        )

    def identify(self, records: Iterable) -> list[PrecisionMarker]:
        return identify_low_precision_markers(records, self.precision_threshold)

    async def correct(self, marker: PrecisionMarker) -> Correction | None:
        return await correct_marker(
            marker, self.fetch, self.target_precision, self.session, self.min_exif_bytes
        )

    async def batch_correct(self, markers: Iterable[PrecisionMarker]) -> list[Correction]:
        return await batch_correct(
            markers,
            self.fetch,
            self.max_corrections,
            self.target_precision,
            self.session,
            self.min_exif_bytes,
        )

    def apply(
        self, markers: Iterable[PrecisionMarker], corrections: Iterable[Correction]
    ) -> list[PrecisionMarker]:
        return apply_corrections(markers, corrections, self.apply_threshold)

    def stats(self, corrections: Iterable[Correction]) -> CorrectionStats:
        return correction_stats(corrections, self.high_confidence_threshold)
