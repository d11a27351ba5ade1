"""
transforms/time_series.py — Tabular views and rankings over migration data.

Flattens MigrationResponse / ChartData into long polars DataFrames and
computes the summary tables shown next to the charts (top destinations,
top origins, largest flows).

Usage:
    from migraflow_pipeline.transforms.time_series import (
        series_frame, flows_frame, top_destinations, top_flows,
    )

    df = series_frame(response)          # one row per (location, period)
    top = top_destinations(response, limit=5)
    edges = top_flows(response, limit=10)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import polars as pl
import structlog

from migraflow_shared.models import (
    ChartData,
    LocationMigrationData,
    MigrationResponse,
    MigrationStats,
)
from migraflow_shared.time_utils import resolve_period_date

log = structlog.get_logger(__name__)

AGGREGATED_PERIOD_ID = "aggregated"

SERIES_SCHEMA: dict[str, Any] = {
    "location_id": pl.String,
    "location_name": pl.String,
    "period_id": pl.String,
    "period_date": pl.Date,
    "move_in": pl.Int64,
    "move_out": pl.Int64,
    "net_migration": pl.Int64,
}

FLOWS_SCHEMA: dict[str, Any] = {
    "origin_id": pl.String,
    "origin_name": pl.String,
    "destination_id": pl.String,
    "destination_name": pl.String,
    "period_id": pl.String,
    "period_date": pl.Date,
    "flow_count": pl.Int64,
    "flow_rate": pl.Float64,
}

CHART_SCHEMA: dict[str, Any] = {
    "period": pl.String,
    "period_id": pl.String,
    "period_date": pl.Date,
    "location_id": pl.String,
    "location_name": pl.String,
    "move_in": pl.Int64,
    "move_out": pl.Int64,
    "net_migration": pl.Int64,
}


def series_frame(response: MigrationResponse) -> pl.DataFrame:
    """
    Long frame with one row per (location, period).

    Columns: location_id, location_name, period_id, period_date (null when
    the id is unparsable), move_in, move_out, net_migration.
    """
    known_starts = response.period_starts()
    rows = [
        {
            "location_id": item.location.id,
            "location_name": item.location.name,
            "period_id": period_id,
            "period_date": resolve_period_date(period_id, known_starts),
            "move_in": stats.move_in,
            "move_out": stats.move_out,
            "net_migration": stats.net,
        }
        for item in response.data
        for period_id, stats in item.time_series.items()
    ]
    return pl.DataFrame(rows, schema=SERIES_SCHEMA)


def flows_frame(response: MigrationResponse) -> pl.DataFrame:
    """Long frame with one row per flow edge."""
    known_starts = response.period_starts()
    rows = [
        {
            "origin_id": f.origin.id,
            "origin_name": f.origin.name,
            "destination_id": f.destination.id,
            "destination_name": f.destination.name,
            "period_id": f.time_period_id,
            "period_date": resolve_period_date(f.time_period_id, known_starts),
            "flow_count": f.flow_count,
            "flow_rate": f.flow_rate,
        }
        for f in response.flows
    ]
    return pl.DataFrame(rows, schema=FLOWS_SCHEMA)


def chart_frame(chart: ChartData) -> pl.DataFrame:
    """Flatten ChartData entries into a long frame (one row per period × location)."""
    rows = [
        {
            "period": entry.period,
            "period_id": entry.period_id,
            "period_date": entry.period_date,
            "location_id": loc.location_id,
            "location_name": loc.location_name,
            "move_in": loc.move_in,
            "move_out": loc.move_out,
            "net_migration": loc.net_migration,
        }
        for entry in chart.entries
        for loc in entry.locations
    ]
    return pl.DataFrame(rows, schema=CHART_SCHEMA)


def summary_stats(response: MigrationResponse) -> dict[str, int]:
    """
    Totals across every location and period in the response.

    Returns:
        dict with total_move_in, total_move_out, total_net_migration,
        location_count.
    """
    df = series_frame(response)
    return {
        "total_move_in": int(df["move_in"].sum()),
        "total_move_out": int(df["move_out"].sum()),
        "total_net_migration": int(df["net_migration"].sum()),
        "location_count": len(response.data),
    }


def _ranked_totals(
    response: MigrationResponse,
    value_col: str,
    alias: str,
    limit: int,
) -> pl.DataFrame:
    df = series_frame(response)
    locations = pl.DataFrame(
        {
            "location_id": [item.location.id for item in response.data],
            "location_name": [item.location.name for item in response.data],
        },
        schema={"location_id": pl.String, "location_name": pl.String},
    )
    totals = df.group_by("location_id").agg(pl.col(value_col).sum().alias(alias))
    return (
        locations.join(totals, on="location_id", how="left")
        .with_columns(pl.col(alias).fill_null(0))
        .sort([alias, "location_name"], descending=[True, False])
        .head(limit)
    )


def top_destinations(response: MigrationResponse, limit: int = 10) -> pl.DataFrame:
    """Locations ranked by total move-in. Columns: location_id, location_name, total_move_in."""
    return _ranked_totals(response, "move_in", "total_move_in", limit)


def top_origins(response: MigrationResponse, limit: int = 10) -> pl.DataFrame:
    """Locations ranked by total move-out. Columns: location_id, location_name, total_move_out."""
    return _ranked_totals(response, "move_out", "total_move_out", limit)


def top_flows(
    response: MigrationResponse,
    limit: int = 10,
    *,
    exclude_self_loops: bool = True,
) -> pl.DataFrame:
    """Largest flow edges by flow_count, optionally dropping origin == destination."""
    df = flows_frame(response)
    if exclude_self_loops:
        df = df.filter(pl.col("origin_id") != pl.col("destination_id"))
    return df.sort(
        ["flow_count", "origin_id", "destination_id"],
        descending=[True, False, False],
    ).head(limit)


def filter_by_periods(
    response: MigrationResponse,
    period_ids: Iterable[str],
) -> MigrationResponse:
    """
    Keep only the given periods. Locations left with no periods are dropped.
    """
    wanted = set(period_ids)
    data = [
        LocationMigrationData(
            location=item.location,
            time_series={k: v for k, v in item.time_series.items() if k in wanted},
        )
        for item in response.data
    ]
    return response.model_copy(
        update={
            "time_periods": [p for p in response.time_periods if p.id in wanted],
            "data": [item for item in data if item.time_series],
            "flows": [f for f in response.flows if f.time_period_id in wanted],
        }
    )


def aggregate_across_time(response: MigrationResponse) -> MigrationResponse:
    """
    Collapse every location's series into one "aggregated" period.

    The monthly period table is dropped with it: "aggregated" is not a
    calendar month, so the result feeds the ranking views (series_frame,
    top_destinations, ...) and yields no entries from aggregate().
    """
    df = series_frame(response)
    totals = {
        row["location_id"]: row
        for row in df.group_by("location_id")
        .agg(
            pl.col("move_in").sum(),
            pl.col("move_out").sum(),
            pl.col("net_migration").sum(),
        )
        .iter_rows(named=True)
    }
    data = []
    for item in response.data:
        row = totals.get(item.location.id)
        stats = (
            MigrationStats(
                move_in=row["move_in"],
                move_out=row["move_out"],
                net_migration=row["net_migration"],
            )
            if row is not None
            else MigrationStats(net_migration=0)
        )
        data.append(
            LocationMigrationData(
                location=item.location,
                time_series={AGGREGATED_PERIOD_ID: stats},
            )
        )
    log.debug("aggregated_across_time", locations=len(data))
    return response.model_copy(update={"data": data, "time_periods": []})
