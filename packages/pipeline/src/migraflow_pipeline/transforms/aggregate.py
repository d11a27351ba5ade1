"""
transforms/aggregate.py — Turn a MigrationResponse into chart-ready entries.

For every period inside the requested window one ChartEntry is built, with
one record per requested location in request order. Locations the response
has no series for (or no value in that period) are zero-filled, so every
entry has the same shape. Entries are sorted by period date.

A payload that does not validate as a MigrationResponse degrades to an empty
ChartData instead of raising; callers tell "no data" from "failed request"
via QueryResult.success, never via this return value.

Usage:
    window = DateWindow(start=date(2019, 1, 1), end=date(2021, 1, 1))
    chart = aggregate(response, [bangkok, chiang_mai], window)
    chart.entries[0].period        # "Jan 2019"
    chart.summary.net_migration
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

import structlog
from pydantic import ValidationError

from migraflow_shared.models import (
    ChartData,
    ChartEntry,
    ChartLocationEntry,
    DateWindow,
    LocationMigrationData,
    LocationRef,
    MigrationResponse,
    MigrationSummary,
)
from migraflow_shared.time_utils import format_date_label, is_in_range, resolve_period_date
from migraflow_pipeline.transforms.matching import (
    LocationMatcher,
    UnmatchedLocationError,
    get_matcher,
)

log = structlog.get_logger(__name__)


def _coerce_response(response: Any) -> MigrationResponse | None:
    if isinstance(response, MigrationResponse):
        return response
    if isinstance(response, Mapping):
        try:
            return MigrationResponse.model_validate(response)
        except ValidationError as exc:
            log.warning("aggregate_malformed_response", errors=exc.error_count())
            return None
    log.warning("aggregate_malformed_response", received=type(response).__name__)
    return None


def _periods_in_window(
    response: MigrationResponse,
    window: DateWindow,
) -> list[tuple[str, date]]:
    """(period_id, resolved_date) for each distinct period inside the window."""
    known_starts = response.period_starts()
    candidates: dict[str, None] = dict.fromkeys(p.id for p in response.time_periods)
    for item in response.data:
        candidates.update(dict.fromkeys(item.time_series))

    kept: list[tuple[str, date]] = []
    skipped: list[str] = []
    for period_id in candidates:
        resolved = resolve_period_date(period_id, known_starts)
        if resolved is None:
            skipped.append(period_id)
            continue
        if is_in_range(resolved, window.start, window.end, window.mode):
            kept.append((period_id, resolved))
    if skipped:
        log.debug("aggregate_unparsable_periods", period_ids=skipped)
    return kept


def _location_entry(
    ref: LocationRef,
    series: LocationMigrationData | None,
    period_id: str,
) -> ChartLocationEntry:
    stats = series.time_series.get(period_id) if series is not None else None
    if stats is None:
        return ChartLocationEntry(location_id=ref.id, location_name=ref.name)
    return ChartLocationEntry(
        location_id=ref.id,
        location_name=ref.name,
        move_in=stats.move_in,
        move_out=stats.move_out,
        net_migration=stats.net,
    )


def aggregate(
    response: MigrationResponse | Mapping[str, Any] | None,
    locations: Sequence[LocationRef],
    window: DateWindow,
    *,
    matcher: LocationMatcher | None = None,
    strict: bool = False,
) -> ChartData:
    """
    Build ordered, zero-filled chart entries plus summary totals.

    Args:
        response:  Merged (or single) migrations response, or its raw dict.
        locations: Requested locations, in display order.
        window:    Date window; window.mode picks inclusive/exclusive end.
        matcher:   Name-join policy (default: case-insensitive).
        strict:    Raise UnmatchedLocationError instead of zero-filling
                   locations that have no series at all.

    Returns:
        ChartData with entries sorted by period date and unmatched locations
        listed as a diagnostic.
    """
    parsed = _coerce_response(response)
    if parsed is None:
        return ChartData(locations=list(locations), window=window)

    matcher = matcher or get_matcher()
    matched, unmatched = matcher.match(locations, parsed.data)
    if unmatched:
        if strict:
            raise UnmatchedLocationError(unmatched)
        log.warning(
            "aggregate_locations_unmatched",
            names=[ref.name for ref in unmatched],
            policy=matcher.policy,
        )

    periods = sorted(_periods_in_window(parsed, window), key=lambda p: p[1])

    entries: list[ChartEntry] = []
    total_in = 0
    total_out = 0
    for period_id, period_date in periods:
        records = [
            _location_entry(ref, matched.get(ref.id), period_id) for ref in locations
        ]
        total_in += sum(r.move_in for r in records)
        total_out += sum(r.move_out for r in records)
        entries.append(
            ChartEntry(
                period=format_date_label(period_date),
                period_id=period_id,
                period_date=period_date,
                locations=records,
            )
        )

    log.info(
        "aggregate_complete",
        periods=len(entries),
        locations=len(locations),
        unmatched=len(unmatched),
    )
    return ChartData(
        entries=entries,
        locations=list(locations),
        summary=MigrationSummary(
            total_move_in=total_in,
            total_move_out=total_out,
            net_migration=total_in - total_out,
        ),
        window=window,
        unmatched=unmatched,
    )
