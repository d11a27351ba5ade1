"""
transforms/merge.py — Combine yearly sub-query responses into one.

Rules:
  - one response:  returned as-is (same object)
  - time_periods:  union keyed by id (last write wins), sorted by date
  - flows:         union keyed by (origin_id, destination_id, period_id);
                   duplicate edges have their counts SUMMED, never replaced
  - data:          location list and order from the first response; each
                   location's time_series gathers its periods from every
                   response (keyed by location id)
  - metadata:      first response's, with the date bounds widened to cover
                   all responses and total_records summed

Both keyed unions use intrinsic identity and the outputs are sorted, so
merge_responses([a, b]) == merge_responses([b, a]).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

import structlog

from migraflow_shared.models import (
    FlowEdge,
    FlowKey,
    LocationMigrationData,
    MigrationResponse,
    MigrationStats,
    ResponseMetadata,
    TimePeriod,
)
from migraflow_shared.time_utils import first_of_month, parse_iso_date, resolve_period_date

log = structlog.get_logger(__name__)


def _sum_optional(a: int | None, b: int | None) -> int | None:
    if a is None and b is None:
        return None
    return (a or 0) + (b or 0)


def _merge_stats(a: MigrationStats, b: MigrationStats) -> MigrationStats:
    net = None
    if a.net_migration is not None or b.net_migration is not None:
        net = a.net + b.net
    return MigrationStats(
        move_in=a.move_in + b.move_in,
        move_out=a.move_out + b.move_out,
        net_migration=net,
    )


def _merge_periods(responses: Sequence[MigrationResponse]) -> list[TimePeriod]:
    periods: dict[str, TimePeriod] = {}
    for response in responses:
        for period in response.time_periods:
            periods[period.id] = period
    return sorted(
        periods.values(),
        key=lambda p: (first_of_month(p.start_date), p.id),
    )


def _merge_flows(
    responses: Sequence[MigrationResponse],
    period_starts: dict[str, date],
) -> list[FlowEdge]:
    flows: dict[FlowKey, FlowEdge] = {}
    duplicates = 0
    for response in responses:
        for flow in response.flows:
            existing = flows.get(flow.key)
            if existing is None:
                flows[flow.key] = flow
                continue
            duplicates += 1
            flows[flow.key] = existing.model_copy(
                update={
                    "flow_count": existing.flow_count + flow.flow_count,
                    "return_flow_count": _sum_optional(
                        existing.return_flow_count, flow.return_flow_count
                    ),
                }
            )
    if duplicates:
        log.info("merge_duplicate_flows_summed", duplicates=duplicates)

    def sort_key(edge: FlowEdge) -> tuple[date, FlowKey]:
        resolved = resolve_period_date(edge.time_period_id, period_starts)
        return (resolved or date.min, edge.key)

    return sorted(flows.values(), key=sort_key)


def _merge_data(responses: Sequence[MigrationResponse]) -> list[LocationMigrationData]:
    first = responses[0]
    series: dict[str, dict[str, MigrationStats]] = {
        item.location.id: dict(item.time_series) for item in first.data
    }
    for response in responses[1:]:
        for item in response.data:
            target = series.get(item.location.id)
            if target is None:
                # Location sets are identical by construction; extras are dropped
                log.debug("merge_location_not_in_first", location_id=item.location.id)
                continue
            for period_id, stats in item.time_series.items():
                current = target.get(period_id)
                target[period_id] = stats if current is None else _merge_stats(current, stats)

    return [
        LocationMigrationData(location=item.location, time_series=series[item.location.id])
        for item in first.data
    ]


def _merge_metadata(responses: Sequence[MigrationResponse]) -> ResponseMetadata | None:
    base = responses[0].metadata
    if base is None:
        return None
    all_meta = [r.metadata for r in responses if r.metadata is not None]
    starts = [(parse_iso_date(m.start_date), m.start_date) for m in all_meta]
    ends = [(parse_iso_date(m.end_date), m.end_date) for m in all_meta]
    start = min((s for s in starts if s[0] is not None), default=(None, base.start_date))
    end = max((e for e in ends if e[0] is not None), default=(None, base.end_date))
    return base.model_copy(
        update={
            "start_date": start[1],
            "end_date": end[1],
            "total_records": sum(m.total_records for m in all_meta),
        }
    )


def merge_responses(responses: Sequence[MigrationResponse]) -> MigrationResponse:
    """
    Merge sub-query responses into a single MigrationResponse.

    Args:
        responses: Non-empty sequence of responses for the same location set.

    Returns:
        The merged response (or responses[0] itself when there is only one).

    Raises:
        ValueError: responses is empty.
    """
    if not responses:
        raise ValueError("No responses to merge")
    if len(responses) == 1:
        return responses[0]

    periods = _merge_periods(responses)
    period_starts = {p.id: p.start_date for p in periods}
    merged = MigrationResponse(
        metadata=_merge_metadata(responses),
        time_periods=periods,
        data=_merge_data(responses),
        flows=_merge_flows(responses, period_starts),
    )
    log.info(
        "responses_merged",
        responses=len(responses),
        periods=len(merged.time_periods),
        flows=len(merged.flows),
        years=sorted({p.start_date.year for p in periods}),
    )
    return merged
