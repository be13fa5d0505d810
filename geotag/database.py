import json
import sqlite3

from geotag.models import Correction, GeoCoordinate, PrecisionMarker


def create_database(db_path="markers.db"):
    """Create SQLite database with markers and corrections tables.

    Returns connection object.
    """
    conn = sqlite3.connect(db_path)
    cursor = conn.cursor()
    # Only the geohash is stored for a location, never raw lat/lon
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS markers (
            id TEXT PRIMARY KEY,
            geohash TEXT NOT NULL,
            precision INTEGER NOT NULL,
            photo_refs TEXT NOT NULL DEFAULT '[]',
            corrected INTEGER NOT NULL DEFAULT 0,
            correction_confidence REAL,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_marker_precision
        ON markers(precision)
    """)

    # Every computed correction is logged, applied or not, for review
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS corrections (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            marker_id TEXT NOT NULL,
            original_geohash TEXT NOT NULL,
            original_precision INTEGER NOT NULL,
            original_latitude REAL NOT NULL,
            original_longitude REAL NOT NULL,
            recovered_latitude REAL NOT NULL,
            recovered_longitude REAL NOT NULL,
            corrected_geohash TEXT NOT NULL,
            corrected_precision INTEGER NOT NULL,
            distance_meters REAL NOT NULL,
            confidence REAL NOT NULL,
            photo_source TEXT NOT NULL,
            applied INTEGER NOT NULL DEFAULT 0,
            created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (marker_id) REFERENCES markers(id)
        )
    """)

    cursor.execute("""
        CREATE INDEX IF NOT EXISTS idx_correction_marker
        ON corrections(marker_id)
    """)

    conn.commit()
    return conn


def _row_to_marker(row):
    marker_id, geohash, photo_refs, corrected, confidence = row
    return PrecisionMarker(
        id=marker_id,
        geohash=geohash,
        photo_refs=tuple(json.loads(photo_refs)),
        corrected=bool(corrected),
        correction_confidence=confidence,
    )


# Marker helper functions
def insert_marker(conn, marker):
    """Insert or replace a marker.

    Args:
        conn: SQLite connection
        marker: PrecisionMarker

    Returns: marker id (str)
    """
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO markers (id, geohash, precision, photo_refs, corrected, correction_confidence)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET
            geohash = excluded.geohash,
            precision = excluded.precision,
            photo_refs = excluded.photo_refs,
            corrected = excluded.corrected,
            correction_confidence = excluded.correction_confidence,
            updated_at = CURRENT_TIMESTAMP
    """, (
        marker.id,
        marker.geohash,
        marker.precision,
        json.dumps(list(marker.photo_refs)),
        int(marker.corrected),
        marker.correction_confidence,
    ))
    conn.commit()
    return marker.id


def query_markers(conn):
    """All markers, ordered by id."""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT id, geohash, photo_refs, corrected, correction_confidence
        FROM markers
        ORDER BY id
    """)
    return [_row_to_marker(row) for row in cursor.fetchall()]


def query_low_precision_markers(conn, precision_threshold=6):
    """Markers whose geohash is shorter than precision_threshold."""
    cursor = conn.cursor()
    cursor.execute("""
        SELECT id, geohash, photo_refs, corrected, correction_confidence
        FROM markers
        WHERE precision < ?
        ORDER BY precision, id
    """, (precision_threshold,))
    return [_row_to_marker(row) for row in cursor.fetchall()]


def update_marker_location(conn, marker):
    """Write back the geohash and correction state of an updated marker."""
    cursor = conn.cursor()
    cursor.execute("""
        UPDATE markers
        SET geohash = ?, precision = ?, corrected = ?, correction_confidence = ?,
            updated_at = CURRENT_TIMESTAMP
        WHERE id = ?
    """, (
        marker.geohash,
        marker.precision,
        int(marker.corrected),
        marker.correction_confidence,
        marker.id,
    ))
    conn.commit()
    return cursor.rowcount


# Correction helper functions
def insert_correction(conn, correction, applied=False):
    """Log a computed correction. Returns the correction row id."""
    cursor = conn.cursor()
    cursor.execute("""
        INSERT INTO corrections (
            marker_id,
            original_geohash,
            original_precision,
            original_latitude,
            original_longitude,
            recovered_latitude,
            recovered_longitude,
            corrected_geohash,
            corrected_precision,
            distance_meters,
            confidence,
            photo_source,
            applied
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    """, (
        correction.marker_id,
        correction.original_geohash,
        correction.original_precision,
        correction.original_coordinate.latitude,
        correction.original_coordinate.longitude,
        correction.recovered_coordinate.latitude,
        correction.recovered_coordinate.longitude,
        correction.corrected_geohash,
        correction.corrected_precision,
        correction.distance_meters,
        correction.confidence,
        correction.photo_source,
        int(applied),
    ))
    conn.commit()
    return cursor.lastrowid


def query_corrections(conn, marker_id=None):
    """Logged corrections as (Correction, applied) pairs, oldest first."""
    cursor = conn.cursor()
    query = """
        SELECT marker_id, original_geohash, original_precision,
               original_latitude, original_longitude,
               recovered_latitude, recovered_longitude,
               corrected_geohash, corrected_precision,
               distance_meters, confidence, photo_source, applied
        FROM corrections
    """
    if marker_id is not None:
        cursor.execute(query + " WHERE marker_id = ? ORDER BY id", (marker_id,))
    else:
        cursor.execute(query + " ORDER BY id")

    results = []
    for row in cursor.fetchall():
        correction = Correction(
            marker_id=row[0],
            original_geohash=row[1],
            original_precision=row[2],
            original_coordinate=GeoCoordinate(row[3], row[4]),
            recovered_coordinate=GeoCoordinate(row[5], row[6]),
            corrected_geohash=row[7],
            corrected_precision=row[8],
            distance_meters=row[9],
            confidence=row[10],
            photo_source=row[11],
        )
        results.append((correction, bool(row[12])))
    return results
