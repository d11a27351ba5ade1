"""
models/migration.py — Pydantic models for the /migrations request and response.

A MigrationResponse is the unit exchanged with the upstream API and the unit
merged by transforms.merge:

    {
      "metadata":     {"scale": "province", "start_date": "...", ...},
      "time_periods": [{"id": "oct19", "start_date": "2019-10-01", ...}],
      "data":         [{"location": {...}, "time_series": {"oct19": {...}}}],
      "flows":        [{"origin": {...}, "destination": {...},
                        "time_period_id": "oct19", "flow_count": 120, ...}]
    }
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from migraflow_shared.time_utils import next_month_start, parse_iso_date

FlowKey = tuple[str, str, str]


def _coerce_date(v: Any) -> Any:
    if isinstance(v, (str, datetime)):
        parsed = parse_iso_date(v)
        return v if parsed is None else parsed
    return v


class TimePeriod(BaseModel):
    """One calendar month of data. `id` is unique within a response."""

    id: str
    start_date: date
    end_date: date | None = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def coerce_dates(cls, v: Any) -> Any:
        return _coerce_date(v)

    @property
    def implicit_end(self) -> date:
        """First day of the following month."""
        return next_month_start(self.start_date)


class LocationInfo(BaseModel):
    """A location as identified by the upstream API."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str
    code: str | None = None
    parent_id: str | None = None


class MigrationStats(BaseModel):
    """Move-in / move-out counts for one location in one period."""

    move_in: int = Field(default=0, ge=0)
    move_out: int = Field(default=0, ge=0)
    net_migration: int | None = None

    @field_validator("move_in", "move_out", mode="before")
    @classmethod
    def null_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @property
    def net(self) -> int:
        """Explicit net_migration when supplied, else move_in - move_out."""
        if self.net_migration is not None:
            return self.net_migration
        return self.move_in - self.move_out


class LocationMigrationData(BaseModel):
    location: LocationInfo
    time_series: dict[str, MigrationStats] = Field(default_factory=dict)


class FlowEdge(BaseModel):
    """Directed migrant count from origin to destination in one period."""

    origin: LocationInfo
    destination: LocationInfo
    time_period_id: str
    flow_count: int = Field(ge=0)
    flow_rate: float = 0.0
    return_flow_count: int | None = None
    return_flow_rate: float | None = None

    @property
    def key(self) -> FlowKey:
        return (self.origin.id, self.destination.id, self.time_period_id)


class ResponseMetadata(BaseModel):
    scale: str
    start_date: str
    end_date: str
    total_records: int = 0
    aggregation: str | None = None


class MigrationResponse(BaseModel):
    """POST /api/v1/migrations payload."""

    metadata: ResponseMetadata | None = None
    time_periods: list[TimePeriod] = Field(default_factory=list)
    data: list[LocationMigrationData] = Field(default_factory=list)
    flows: list[FlowEdge] = Field(default_factory=list)

    @field_validator("time_periods", "data", "flows", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def period_starts(self) -> dict[str, date]:
        """id -> start_date lookup over time_periods."""
        return {p.id: p.start_date for p in self.time_periods}


class MigrationRequest(BaseModel):
    """POST /api/v1/migrations body."""

    scale: str
    start_date: str | None = None
    end_date: str | None = None
    provinces: list[str] | None = None
    districts: list[str] | None = None
    subdistricts: list[str] | None = None
    aggregation: str = "monthly"
    include_flows: bool = False

    def to_request_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ValidationResponse(BaseModel):
    """POST /api/v1/datasets/{item_key}/validate payload."""

    valid: bool
    message: str
    item_key: str
    details: dict[str, Any] | None = None
