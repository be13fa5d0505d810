"""Geohash precision upgrades without new location data.

Re-encodes the centre of a marker's current cell at a longer length. The
location does not become more accurate; the stored hash just reaches the
length other tools expect. Photo GPS correction (photo_gps_correction.py)
is the way to gain real accuracy.
"""

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, replace

from geotag.geohash import accuracy_for, encode
from geotag.models import GeoCoordinate, PrecisionMarker

DEFAULT_MAX_UPGRADES = 15


@dataclass(frozen=True)
class PrecisionUpgrade:
    marker_id: str
    original_geohash: str
    original_precision: int
    upgraded_geohash: str
    upgraded_precision: int
    coordinate: GeoCoordinate

    @property
    def accuracy(self) -> str:
        return accuracy_for(self.upgraded_precision)


def upgrade_precision(marker: PrecisionMarker, target_precision: int = 8) -> PrecisionUpgrade | None:
    """Re-encode a marker at target_precision, None if already long enough."""
    if marker.precision >= target_precision:
        return None

    centre = marker.coordinate
    return PrecisionUpgrade(
        marker_id=marker.id,
        original_geohash=marker.geohash,
        original_precision=marker.precision,
        upgraded_geohash=encode(centre, target_precision),
        upgraded_precision=target_precision,
        coordinate=centre,
    )


def upgrade_many(
    markers: Iterable[PrecisionMarker],
    max_upgrades: int = DEFAULT_MAX_UPGRADES,
    target_precision: int = 8,
) -> list[PrecisionUpgrade]:
    """Upgrade the first max_upgrades markers below target_precision.

    Input order is preserved, so callers sort by age or importance first.
    """
    candidates = [m for m in markers if m.precision < target_precision]
    upgrades = (upgrade_precision(m, target_precision) for m in candidates[:max_upgrades])
    return [upgrade for upgrade in upgrades if upgrade is not None]


def apply_precision_upgrades(
    markers: Iterable[PrecisionMarker], upgrades: Iterable[PrecisionUpgrade]
) -> list[PrecisionMarker]:
    by_marker = {upgrade.marker_id: upgrade for upgrade in upgrades}
    return [
        replace(marker, geohash=by_marker[marker.id].upgraded_geohash)
        if marker.id in by_marker
        else marker
        for marker in markers
    ]


def upgrade_stats(upgrades: Iterable[PrecisionUpgrade]) -> dict:
    upgrades = list(upgrades)
    return {
        "count": len(upgrades),
        "by_original_precision": dict(Counter(u.original_precision for u in upgrades)),
    }
