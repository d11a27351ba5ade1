"""
pipelines/migration_query.py — End-to-end migration query for the dashboards.

Orchestrates:
  1. Validate the request (locations, dates, aggregation)
  2. Pick the scale (most specific location type wins) and resolve
     LocationRefs → upstream ids through the cached LocationCatalog
  3. Decompose the window into yearly sub-queries and fan them out
     concurrently; any failure fails the whole query
  4. Merge the sub-responses (flow edges summed)
  5. Aggregate into zero-filled, date-ordered ChartData

Superseded requests are not aborted; their results are dropped at commit
time by a LatestRequestGuard (last request wins).

Usage:
    pipeline = MigrationQueryPipeline(client, catalog)
    result = await pipeline.load_chart_data(
        [bangkok, chiang_mai], date(2019, 1, 1), date(2021, 1, 1)
    )
    if result.success:
        render(result.chart)
    else:
        show_error(result.error)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Generic, TypeVar

from migraflow_shared.config import settings
from migraflow_shared.constants import AGGREGATIONS, LOCATION_TYPE_SCALE, SCALE_PRIORITY, SCALES
from migraflow_shared.models import ChartData, DateWindow, LocationRef, MigrationResponse
from migraflow_shared.time_utils import EndMode, is_in_range, parse_iso_date, resolve_period_date
from migraflow_pipeline.sources.catalog import LocationCatalog
from migraflow_pipeline.sources.migration_api import APIError, MigrationAPIClient
from migraflow_pipeline.transforms.aggregate import aggregate
from migraflow_pipeline.transforms.decompose import (
    SubQueryError,
    YearRange,
    decompose,
    fan_out,
    query_bounds,
)
from migraflow_pipeline.transforms.matching import LocationMatcher, get_matcher
from migraflow_pipeline.transforms.merge import merge_responses
from migraflow_pipeline.transforms.time_series import filter_by_periods, summary_stats
from migraflow_pipeline.utils.logging import get_logger, request_context

log = get_logger(__name__, pipeline="migration_query")

T = TypeVar("T")


class QueryValidationError(ValueError):
    """The query options are unusable as given."""


@dataclass
class QueryResult:
    """Outcome of one migration query. Exactly one of chart/response or error is meaningful."""

    success: bool
    locations: list[LocationRef] = field(default_factory=list)
    response: MigrationResponse | None = None
    chart: ChartData | None = None
    window: DateWindow | None = None
    summary: dict[str, int] | None = None
    error: str | None = None
    sub_queries: int = 0
    failed_sub_queries: int = 0
    superseded: bool = False
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @classmethod
    def failure(cls, error: str, **kwargs: Any) -> "QueryResult":
        return cls(success=False, error=error, **kwargs)


class LatestRequestGuard(Generic[T]):
    """
    Last-result-wins commit point for overlapping requests.

    Each request takes a token from issue(); commit() only stores a value
    whose token is still the most recently issued one.
    """

    def __init__(self) -> None:
        self._latest = 0
        self._value: T | None = None

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, token: int) -> bool:
        return token == self._latest

    def commit(self, token: int, value: T) -> bool:
        if not self.is_current(token):
            log.info("stale_result_discarded", token=token, latest=self._latest)
            return False
        self._value = value
        return True

    @property
    def value(self) -> T | None:
        return self._value


def validate_query_options(
    scale: str,
    start_date: date | None,
    end_date: date | None,
    aggregation: str | None = None,
    end_mode: EndMode | str = EndMode.EXCLUSIVE,
) -> None:
    """
    Raise QueryValidationError if the options cannot form a valid query.

    Dates must be given together; an exclusive window needs start < end,
    an inclusive one start <= end.
    """
    if scale not in SCALES:
        raise QueryValidationError(f"Scale must be one of: {', '.join(SCALES)}")
    if (start_date is None) != (end_date is None):
        raise QueryValidationError(
            "If providing dates, both start date and end date are required"
        )
    if start_date is not None and end_date is not None:
        if EndMode(end_mode) is EndMode.EXCLUSIVE and start_date >= end_date:
            raise QueryValidationError("Start date must be before end date")
        if start_date > end_date:
            raise QueryValidationError("Start date must not be after end date")
    if aggregation is not None and aggregation not in AGGREGATIONS:
        raise QueryValidationError(
            f"Aggregation must be one of: {', '.join(AGGREGATIONS)}"
        )


def determine_scale(locations: Sequence[LocationRef]) -> str:
    """The most specific scale present among the locations."""
    present = {LOCATION_TYPE_SCALE[ref.type.value] for ref in locations}
    for scale in SCALE_PRIORITY:
        if scale in present:
            return scale
    return "province"


def window_summary(
    response: MigrationResponse,
    locations: Sequence[LocationRef],
    window: DateWindow,
    matcher: LocationMatcher | None = None,
) -> dict[str, int]:
    """
    summary_stats() restricted to what the chart shows.

    Yearly sub-queries return whole calendar years and may carry locations
    that were not requested; only the requested locations' series (joined
    with the same matcher as aggregate()) and the periods inside the window
    are counted.
    """
    known_starts = response.period_starts()
    matched, _ = (matcher or get_matcher()).match(locations, response.data)
    series = list(matched.values())
    period_ids = {
        period_id
        for item in series
        for period_id in item.time_series
        if is_in_range(
            resolve_period_date(period_id, known_starts),
            window.start,
            window.end,
            window.mode,
        )
    }
    scoped = filter_by_periods(response.model_copy(update={"data": series}), period_ids)
    return summary_stats(scoped)


def _to_date(value: date | str | None, label: str) -> date | None:
    if value is None or isinstance(value, date):
        return value
    parsed = parse_iso_date(value)
    if parsed is None:
        raise QueryValidationError(f"Invalid {label} {value!r}. Use ISO 8601 format.")
    return parsed


class MigrationQueryPipeline:
    """Runs decomposed, merged, aggregated migration queries."""

    def __init__(
        self,
        client: MigrationAPIClient,
        catalog: LocationCatalog,
        *,
        aggregation: str | None = None,
        end_mode: EndMode | str | None = None,
        matcher: LocationMatcher | None = None,
        max_sub_queries: int | None = None,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._aggregation = aggregation or settings.default_aggregation
        self._end_mode = EndMode(end_mode or settings.range_end_mode)
        self._matcher = matcher
        self._max_sub_queries = max_sub_queries or settings.max_sub_queries
        self._guard: LatestRequestGuard[QueryResult] = LatestRequestGuard()

    @property
    def end_mode(self) -> EndMode:
        return self._end_mode

    @property
    def latest(self) -> QueryResult | None:
        """The most recent committed result of load_chart_data()."""
        return self._guard.value

    async def _resolve_window(
        self,
        start_date: date | str | None,
        end_date: date | str | None,
    ) -> DateWindow:
        start = _to_date(start_date, "start date")
        end = _to_date(end_date, "end date")
        if start is None or end is None:
            default = await self._catalog.default_date_range()
            if default is None:
                raise QueryValidationError("No date range given and none advertised by the API")
            start = start or default[0]
            end = end or default[1]
            log.info("default_date_range_used", start_date=str(start), end_date=str(end))
        if start > end:
            raise QueryValidationError("Start date must be before end date")
        return DateWindow(start=start, end=end, mode=self._end_mode)

    async def execute(
        self,
        locations: Sequence[LocationRef],
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> QueryResult:
        """
        Fetch and merge migration data for the locations over the window.

        Returns:
            QueryResult; success=False carries a single user-facing message.
            Sub-query failures never yield a partial result.
        """
        locations = list(locations)
        if not locations:
            return QueryResult.failure("No locations selected")

        try:
            window = await self._resolve_window(start_date, end_date)
            scale = determine_scale(locations)
            validate_query_options(
                scale, window.start, window.end, self._aggregation, window.mode
            )
            first_day, last_day = query_bounds(window.start, window.end, window.mode)
            ranges = decompose(first_day, last_day)
            if len(ranges) > self._max_sub_queries:
                raise QueryValidationError(
                    f"Date window spans {len(ranges)} years; at most "
                    f"{self._max_sub_queries} are allowed"
                )

            selected = [ref for ref in locations if LOCATION_TYPE_SCALE[ref.type.value] == scale]
            if len(selected) < len(locations):
                log.warning(
                    "locations_outside_scale_ignored",
                    scale=scale,
                    ignored=[ref.name for ref in locations if ref not in selected],
                )
            location_ids = await self._catalog.resolve_api_ids(selected)
            if not location_ids:
                log.warning("no_location_ids_resolved", names=[ref.name for ref in selected])

            query_log = log.bind(scale=scale, sub_queries=len(ranges))
            query_log.info(
                "query_start",
                start_date=str(window.start),
                end_date=str(window.end),
                end_mode=window.mode.value,
                location_ids=location_ids,
            )

            async def fetch(year_range: YearRange) -> MigrationResponse:
                return await self._client.get_migration_data(
                    scale,
                    location_ids,
                    year_range.start,
                    year_range.end,
                    aggregation=self._aggregation,
                    include_flows=True,
                )

            responses = await fan_out(ranges, fetch)
            merged = merge_responses(responses)
        except QueryValidationError as exc:
            log.warning("query_rejected", error=str(exc))
            return QueryResult.failure(str(exc), locations=locations)
        except SubQueryError as exc:
            log.error("query_failed", failed=exc.failed, total=exc.total)
            return QueryResult.failure(
                str(exc),
                locations=locations,
                sub_queries=exc.total,
                failed_sub_queries=exc.failed,
            )
        except APIError as exc:
            # Catalog lookups go through the API too
            log.error("query_failed", error=exc.message, status=exc.status_code)
            return QueryResult.failure(exc.message, locations=locations)

        query_log.info(
            "query_complete",
            periods=len(merged.time_periods),
            flows=len(merged.flows),
        )
        return QueryResult(
            success=True,
            locations=locations,
            response=merged,
            window=window,
            summary=window_summary(merged, locations, window, self._matcher),
            sub_queries=len(ranges),
        )

    async def load_chart_data(
        self,
        locations: Sequence[LocationRef],
        start_date: date | str | None = None,
        end_date: date | str | None = None,
    ) -> QueryResult:
        """
        execute() then aggregate(), committed through the latest-request guard.

        The returned result has superseded=True when a newer call started
        before this one finished; it is then not stored as `latest`.
        """
        token = self._guard.issue()
        with request_context(request_token=token):
            result = await self.execute(locations, start_date, end_date)
            if result.success and result.response is not None and result.window is not None:
                result.chart = aggregate(
                    result.response,
                    result.locations,
                    result.window,
                    matcher=self._matcher,
                )
            result.superseded = not self._guard.commit(token, result)
        return result
