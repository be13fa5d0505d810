"""Value types shared across the geotagging pipeline.

Everything here is an immutable dataclass. Derived fields (a marker's
precision, its decoded coordinate and accuracy label) are properties so they
can never drift out of sync with the geohash they are computed from.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class GeoCoordinate:
    """A decimal-degree latitude/longitude pair.

    No range check happens on construction; the validator is responsible
    for reporting out-of-range values (see coordinate_validation.validate).
    """

    latitude: float
    longitude: float

    def is_in_range(self) -> bool:
        return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class PrecisionMarker:
    """A stored location record identified by its geohash.

    Attributes:
        id: Identifier of the record in the external store.
        geohash: The stored geohash; its length is the marker's precision.
        photo_refs: Photo URLs (or paths) attached to the record.
        corrected: True once a photo GPS correction has been applied.
        correction_confidence: Confidence of the applied correction.
    """

    id: str
    geohash: str
    photo_refs: tuple[str, ...] = ()
    corrected: bool = False
    correction_confidence: float | None = None

    def __post_init__(self):
        from geotag.geohash import decode_bounds

        # Raises ValueError for empty hashes and characters outside the alphabet
        decode_bounds(self.geohash)

    @property
    def precision(self) -> int:
        return len(self.geohash)

    @property
    def coordinate(self) -> GeoCoordinate:
        from geotag.geohash import decode

        return decode(self.geohash)

    @property
    def accuracy_label(self) -> str:
        from geotag.geohash import accuracy_for

        return accuracy_for(self.precision)

    @property
    def has_photos(self) -> bool:
        return len(self.photo_refs) > 0


class IssueKind(str, enum.Enum):
    SWAP = "swap"
    INVALID_RANGE = "invalid_range"
    PRECISION_LOSS = "precision_loss"
    HEMISPHERE_ERROR = "hemisphere_error"


@dataclass(frozen=True)
class ValidationIssue:
    kind: IssueKind
    description: str
    suggested_fix: GeoCoordinate | None = None


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    issues: tuple[ValidationIssue, ...] = ()
    corrected: GeoCoordinate | None = None

    def has_issue(self, kind: IssueKind) -> bool:
        return any(issue.kind == kind for issue in self.issues)


@dataclass(frozen=True)
class CorrectionSuggestion:
    kind: str
    coordinate: GeoCoordinate
    description: str
    confidence: float


class LocationKind(str, enum.Enum):
    LAND = "land"
    OCEAN = "ocean"
    POLAR = "polar"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ReasonablenessResult:
    reasonable: bool
    issues: tuple[str, ...]
    kind: LocationKind


@dataclass(frozen=True)
class Correction:
    """Outcome of recovering a marker's location from one of its photos.

    Raises:
        ValueError: If confidence falls outside [0, 1].
    """

    marker_id: str
    original_geohash: str
    original_precision: int
    original_coordinate: GeoCoordinate
    recovered_coordinate: GeoCoordinate
    corrected_geohash: str
    corrected_precision: int
    distance_meters: float
    confidence: float
    photo_source: str

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Correction confidence must be within [0, 1], got {self.confidence}"
            )

    @property
    def accuracy_improvement(self) -> str:
        """Human-readable accuracy change, e.g. '±2.4 km → ±19 m'."""
        from geotag.geohash import accuracy_for

        return (
            f"{accuracy_for(self.original_precision)} → "
            f"{accuracy_for(self.corrected_precision)}"
        )


@dataclass(frozen=True)
class HistoryEntry:
    stage: str
    coordinate: GeoCoordinate
    timestamp: datetime = field(default_factory=datetime.now)
    source: str = "unknown"


@dataclass(frozen=True)
class PhotoPayload:
    """Raw photo bytes handed over by a fetch collaborator."""

    data: bytes
    content_type: str = ""
    name: str = ""

    @property
    def size(self) -> int:
        return len(self.data)
