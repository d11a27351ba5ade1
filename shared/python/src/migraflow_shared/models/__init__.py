"""
migraflow_shared.models — Pydantic models for the migrations API and chart output.

  migration — TimePeriod, FlowEdge, MigrationResponse, MigrationRequest, ...
  locations — LocationRef (caller side) and the upstream location catalog
  charts    — ChartEntry, ChartData, MigrationSummary, DateWindow
"""

from migraflow_shared.models.migration import (
    FlowEdge,
    FlowKey,
    LocationInfo,
    LocationMigrationData,
    MigrationRequest,
    MigrationResponse,
    MigrationStats,
    ResponseMetadata,
    TimePeriod,
    ValidationResponse,
)
from migraflow_shared.models.locations import (
    District,
    LocationRef,
    LocationType,
    MetadataResponse,
    Province,
    Subdistrict,
    TimePeriodsInfo,
)
from migraflow_shared.models.charts import (
    ChartData,
    ChartEntry,
    ChartLocationEntry,
    DateWindow,
    MigrationSummary,
)

__all__ = [
    "TimePeriod",
    "LocationInfo",
    "MigrationStats",
    "LocationMigrationData",
    "FlowEdge",
    "FlowKey",
    "ResponseMetadata",
    "MigrationResponse",
    "MigrationRequest",
    "ValidationResponse",
    "LocationType",
    "LocationRef",
    "Province",
    "District",
    "Subdistrict",
    "TimePeriodsInfo",
    "MetadataResponse",
    "DateWindow",
    "ChartLocationEntry",
    "ChartEntry",
    "MigrationSummary",
    "ChartData",
]
