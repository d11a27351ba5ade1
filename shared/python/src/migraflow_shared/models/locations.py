"""
models/locations.py — Pydantic models for locations and the location catalog.

Two identity namespaces meet here:
  LocationRef  — the caller's own handle on a place (id, name, type)
  Province / District / Subdistrict / LocationInfo — the upstream API's records
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from migraflow_shared.constants import LOCATION_TYPE_SCALE
from migraflow_shared.models.migration import TimePeriod


class LocationType(str, enum.Enum):
    PROVINCE = "province"
    DISTRICT = "district"
    SUB_DISTRICT = "subDistrict"

    @property
    def scale(self) -> str:
        """Upstream API scale for this location type."""
        return LOCATION_TYPE_SCALE[self.value]


class LocationRef(BaseModel):
    """A caller-selected location. Its id is NOT an upstream API id."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: LocationType = LocationType.PROVINCE

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class _CatalogRecord(BaseModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    id: str
    name: str


class Province(_CatalogRecord):
    code: str = ""
    region: str | None = None


class District(_CatalogRecord):
    province_id: str


class Subdistrict(_CatalogRecord):
    district_id: str


class TimePeriodsInfo(BaseModel):
    """Date bounds of the datasets the API currently serves."""

    start_date: str
    end_date: str
    available_periods: list[TimePeriod] = Field(default_factory=list)


class MetadataResponse(BaseModel):
    """GET /api/v1/metadata payload — the location catalog."""

    provinces: list[Province] = Field(default_factory=list)
    districts: list[District] = Field(default_factory=list)
    subdistricts: list[Subdistrict] = Field(default_factory=list)
    time_periods: TimePeriodsInfo | None = None

    @field_validator("districts", "subdistricts", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v
