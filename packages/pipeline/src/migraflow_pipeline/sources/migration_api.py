"""
sources/migration_api.py — Async client for the upstream migrations API.

Endpoints:
  GET  /api/v1/metadata                        — provinces, districts, subdistricts, time periods
  POST /api/v1/migrations                      — per-location series (+ optional flows)
  POST /api/v1/datasets/{item_key}/validate    — dataset file validation

Migrations request body:
  {
    "scale": "province",
    "start_date": "2019-01-01", "end_date": "2019-12-31",
    "provinces": ["1", "50"],
    "aggregation": "monthly",
    "include_flows": true
  }

Transport errors (connect failures, timeouts) are retried with backoff;
HTTP error statuses are not. Every failure surfaces as APIError.

Usage:
    client = MigrationAPIClient()
    response = await client.get_migration_data(
        "province", ["1", "50"], date(2019, 1, 1), date(2019, 12, 31), include_flows=True
    )
"""

from __future__ import annotations

from datetime import date
from typing import Any
from urllib.parse import quote

import httpx
import structlog
from pydantic import ValidationError

from migraflow_shared.config import settings
from migraflow_shared.constants import (
    DATASET_VALIDATE_ENDPOINT,
    METADATA_ENDPOINT,
    MIGRATIONS_ENDPOINT,
    SCALE_REQUEST_FIELD,
    SCALES,
)
from migraflow_shared.models import (
    MetadataResponse,
    MigrationRequest,
    MigrationResponse,
    ValidationResponse,
)
from migraflow_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)


class APIError(Exception):
    """An upstream API call failed. status_code 0 means no HTTP response."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __repr__(self) -> str:
        return f"APIError({self.message!r}, status_code={self.status_code})"


def _iso(value: date | str | None) -> str | None:
    if value is None:
        return None
    return value.isoformat() if isinstance(value, date) else value


class MigrationAPIClient:
    """Thin async wrapper over the migrations REST API."""

    name = "migrations_api"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        token: str | None = None,
    ) -> None:
        self._base_url = (base_url or settings.migration_api_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.migration_api_timeout
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        token = token if token is not None else settings.migration_api_token
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._log = log.bind(source_name=self.name)

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=0.5, retry_on=(httpx.TransportError,))
    async def _send(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout, headers=self._headers) as client:
            return await client.request(method, f"{self._base_url}{endpoint}", json=body)

    async def _request(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded body, raising APIError on failure."""
        try:
            response = await self._send(method, endpoint, body)
        except httpx.TimeoutException as exc:
            raise APIError("Request timeout", 408) from exc
        except httpx.TransportError as exc:
            raise APIError(str(exc) or "Network error", 0) from exc

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                data: Any = response.json()
            except ValueError:
                data = response.text
        else:
            data = response.text

        if not response.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("message") or data.get("error")
            raise APIError(
                message or f"HTTP {response.status_code}: {response.reason_phrase}",
                response.status_code,
                data,
            )
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def get_metadata(self) -> MetadataResponse:
        """GET /api/v1/metadata."""
        self._log.info("metadata_fetch")
        data = await self._request("GET", METADATA_ENDPOINT)
        try:
            return MetadataResponse.model_validate(data)
        except ValidationError as exc:
            raise APIError("Malformed metadata payload", 200, data) from exc

    async def get_migrations(self, request: MigrationRequest) -> MigrationResponse:
        """POST /api/v1/migrations with a prepared request body."""
        body = request.to_request_body()
        self._log.info(
            "migrations_fetch",
            scale=request.scale,
            start_date=request.start_date,
            end_date=request.end_date,
            include_flows=request.include_flows,
        )
        data = await self._request("POST", MIGRATIONS_ENDPOINT, body)
        try:
            response = MigrationResponse.model_validate(data)
        except ValidationError as exc:
            raise APIError("Malformed migrations payload", 200, data) from exc

        self._log.info(
            "migrations_fetch_complete",
            scale=request.scale,
            periods=len(response.time_periods),
            locations=len(response.data),
            flows=len(response.flows),
        )
        return response

    async def get_migration_data(
        self,
        scale: str,
        location_ids: list[str] | None = None,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        aggregation: str | None = None,
        include_flows: bool = False,
    ) -> MigrationResponse:
        """
        Fetch migration series for a set of upstream location ids.

        Args:
            scale:         "province" | "district" | "subdistrict".
            location_ids:  Upstream ids at that scale. Empty/None lets the
                           server return every location.
            start_date:    Window start (server default when omitted).
            end_date:      Window end (server default when omitted).
            aggregation:   "monthly" | "quarterly" | "yearly".
            include_flows: Also return origin→destination flow edges.

        Returns:
            Validated MigrationResponse.
        """
        if scale not in SCALES:
            raise ValueError(f"Scale must be one of: {', '.join(SCALES)}")

        fields: dict[str, Any] = {
            "scale": scale,
            "start_date": _iso(start_date),
            "end_date": _iso(end_date),
            "aggregation": aggregation or settings.default_aggregation,
            "include_flows": include_flows,
        }
        if location_ids:
            fields[SCALE_REQUEST_FIELD[scale]] = list(location_ids)
        return await self.get_migrations(MigrationRequest(**fields))

    async def validate_dataset(self, item_key: str) -> ValidationResponse:
        """POST /api/v1/datasets/{item_key}/validate."""
        endpoint = DATASET_VALIDATE_ENDPOINT.format(item_key=quote(item_key, safe=""))
        data = await self._request("POST", endpoint)
        try:
            return ValidationResponse.model_validate(data)
        except ValidationError as exc:
            raise APIError("Malformed validation payload", 200, data) from exc

    async def health_check(self) -> bool:
        """True if the metadata endpoint answers."""
        try:
            await self.get_metadata()
        except APIError as exc:
            self._log.warning("health_check_failed", error=exc.message, status=exc.status_code)
            return False
        return True
