# tests/__init__.py
"""Test suite for the geotag correction pipeline.

Test Structure:
    - test_config.py: Configuration loading and validation
    - test_database.py: Marker store and correction log (idempotent upserts)
    - test_geohash.py: Geohash codec and precision table
    - test_coordinate_validation.py: Range checks, advisory issues, suggestions
    - test_coordinate_verification.py: Diagnostics sessions, drift, round trips
    - test_gps_extractor.py: EXIF GPS extraction strategies and DMS conversion
    - test_photo_fetcher.py: HTTP (httpx mock transport) and file fetchers
    - test_photo_gps_correction.py: Identification, confidence, correction, apply
    - test_precision_migration.py: Geohash upgrades without new data

Fixtures defined in conftest.py provide:
    - Synthetic JPEGs with embedded GPS (built with Pillow)
    - Fake async photo fetchers
    - Temporary databases and directories
    - Mock configurations and stored location records

Run tests:
    pytest                                        # Run all tests
    pytest tests/test_photo_gps_correction.py     # Run specific test file
    pytest --cov=geotag --cov-report=term-missing # With coverage
    pytest -v                                     # Verbose output
    pytest -k "confidence"                        # Run tests matching pattern
"""
