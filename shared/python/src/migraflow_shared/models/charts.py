"""
models/charts.py — Chart-ready output of the LocationSeriesAggregator.

ChartData is handed read-only to every renderer (diverging bars, line
charts, flow diagrams), so all chart models are frozen.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from migraflow_shared.models.locations import LocationRef
from migraflow_shared.time_utils import EndMode


class DateWindow(BaseModel):
    """A requested date window; `mode` decides whether `end` is included."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    mode: EndMode = EndMode.EXCLUSIVE

    @model_validator(mode="after")
    def check_order(self) -> "DateWindow":
        if self.start > self.end:
            raise ValueError(f"window start {self.start} is after end {self.end}")
        return self


class ChartLocationEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    location_id: str
    location_name: str
    move_in: int = 0
    move_out: int = 0
    net_migration: int = 0


class ChartEntry(BaseModel):
    """One period's values for every requested location."""

    model_config = ConfigDict(frozen=True)

    period: str                      # display label, e.g. "Oct 2019"
    period_id: str
    period_date: date
    locations: list[ChartLocationEntry] = Field(default_factory=list)


class MigrationSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_move_in: int = 0
    total_move_out: int = 0
    net_migration: int = 0


class ChartData(BaseModel):
    """Aggregator output: {entries, locations, summary} plus diagnostics."""

    model_config = ConfigDict(frozen=True)

    entries: list[ChartEntry] = Field(default_factory=list)
    locations: list[LocationRef] = Field(default_factory=list)
    summary: MigrationSummary = Field(default_factory=MigrationSummary)
    window: DateWindow | None = None
    unmatched: list[LocationRef] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.entries
