"""
tests/conftest.py — Shared pytest fixtures for the pipeline test suite.

Provides:
  fixture_path()        — resolves paths to tests/fixtures/
  metadata_payload      — parsed /metadata fixture JSON
  migrations_payload    — parsed /migrations fixture JSON
  make_response()       — factory for synthetic yearly MigrationResponses
  bangkok / chiang_mai  — caller-side LocationRefs
  mock_http             — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import pytest
import respx

from migraflow_shared.constants import MONTH_LABELS
from migraflow_shared.models import LocationRef, LocationType, MigrationResponse

FIXTURES_DIR = Path(__file__).parent / "fixtures"

API_URL = "http://migrations.test"

DEFAULT_LOCATIONS = (("1", "Bangkok"), ("50", "Chiang Mai"))


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def api_url() -> str:
    return API_URL


# ---------------------------------------------------------------------------
# Fixture payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def metadata_payload() -> dict:
    """Parsed /api/v1/metadata payload (four provinces, a few districts)."""
    return json.loads((FIXTURES_DIR / "metadata_sample.json").read_text())


@pytest.fixture
def migrations_payload() -> dict:
    """Parsed /api/v1/migrations payload for Oct–Dec 2019."""
    return json.loads((FIXTURES_DIR / "migrations_sample.json").read_text())


@pytest.fixture
def migrations_response(migrations_payload: dict) -> MigrationResponse:
    return MigrationResponse.model_validate(migrations_payload)


# ---------------------------------------------------------------------------
# Synthetic responses
# ---------------------------------------------------------------------------

def build_response(
    year: int,
    *,
    months: Iterable[int] = range(1, 13),
    locations: Iterable[tuple[str, str]] = DEFAULT_LOCATIONS,
    move_in: int = 100,
    move_out: int = 40,
    flow_count: int | None = 10,
) -> MigrationResponse:
    """
    One monthly response for `year` keyed by month codes ("jan19", ...).

    Every location gets the same move_in/move_out in every month. When
    flow_count is set, each month carries one edge from the last location
    to the first.
    """
    months = list(months)
    locations = list(locations)
    period_ids = [f"{MONTH_LABELS[m - 1].lower()}{year % 100:02d}" for m in months]

    payload: dict[str, Any] = {
        "metadata": {
            "scale": "province",
            "start_date": f"{year}-01-01",
            "end_date": f"{year}-12-31",
            "total_records": len(months) * len(locations),
            "aggregation": "monthly",
        },
        "time_periods": [
            {"id": pid, "start_date": f"{year}-{m:02d}-01"}
            for pid, m in zip(period_ids, months)
        ],
        "data": [
            {
                "location": {"id": loc_id, "name": name},
                "time_series": {
                    pid: {"move_in": move_in, "move_out": move_out} for pid in period_ids
                },
            }
            for loc_id, name in locations
        ],
        "flows": [],
    }
    if flow_count is not None and locations:
        (dest_id, dest_name), (origin_id, origin_name) = locations[0], locations[-1]
        payload["flows"] = [
            {
                "origin": {"id": origin_id, "name": origin_name},
                "destination": {"id": dest_id, "name": dest_name},
                "time_period_id": pid,
                "flow_count": flow_count,
            }
            for pid in period_ids
        ]
    return MigrationResponse.model_validate(payload)


@pytest.fixture
def make_response() -> Callable[..., MigrationResponse]:
    return build_response


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------

@pytest.fixture
def bangkok() -> LocationRef:
    return LocationRef(id="loc-bkk", name="Bangkok", type=LocationType.PROVINCE)


@pytest.fixture
def chiang_mai() -> LocationRef:
    return LocationRef(id="loc-cnx", name="Chiang Mai", type=LocationType.PROVINCE)


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http, api_url):
            mock_http.get(f"{api_url}/api/v1/metadata").mock(
                return_value=httpx.Response(200, json={...})
            )
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
