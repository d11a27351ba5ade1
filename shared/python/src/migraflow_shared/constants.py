"""
constants.py — shared constants used across the pipeline.

Month codes, scale/aggregation literals, and the mapping between the
caller-side location types and the upstream API's scales are defined here
so the transforms and the API client agree on them.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Months
# ---------------------------------------------------------------------------
MONTH_CODES: Final[dict[str, int]] = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

MONTH_LABELS: Final[tuple[str, ...]] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# Two-digit years in period codes ("oct19") are always 21st century
PERIOD_CODE_CENTURY: Final[int] = 2000

# ---------------------------------------------------------------------------
# Upstream API vocabulary
# ---------------------------------------------------------------------------
SCALES: Final[tuple[str, ...]] = ("province", "district", "subdistrict")
AGGREGATIONS: Final[tuple[str, ...]] = ("monthly", "quarterly", "yearly")

# Caller-side LocationRef.type -> upstream scale
LOCATION_TYPE_SCALE: Final[dict[str, str]] = {
    "province": "province",
    "district": "district",
    "subDistrict": "subdistrict",
}

# Most specific scale first; a mixed selection is queried at the finest level
SCALE_PRIORITY: Final[tuple[str, ...]] = ("subdistrict", "district", "province")

# Request body field carrying the location ids for each scale
SCALE_REQUEST_FIELD: Final[dict[str, str]] = {
    "province": "provinces",
    "district": "districts",
    "subdistrict": "subdistricts",
}


# ---------------------------------------------------------------------------
# API endpoints
# ---------------------------------------------------------------------------
METADATA_ENDPOINT: Final[str] = "/api/v1/metadata"
MIGRATIONS_ENDPOINT: Final[str] = "/api/v1/migrations"
DATASET_VALIDATE_ENDPOINT: Final[str] = "/api/v1/datasets/{item_key}/validate"
