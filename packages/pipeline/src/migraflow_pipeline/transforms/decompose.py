"""
transforms/decompose.py — Split a long date window into yearly sub-queries.

The upstream API answers one calendar year at a time reliably, so a window
spanning several years is broken into one YearRange per year. Day-level
precision at the outer edges is dropped for multi-year windows; the
aggregator re-applies the exact window afterwards.

    decompose(date(2020, 6, 1), date(2020, 9, 1))
        -> [YearRange(2020-06-01, 2020-09-01)]
    decompose(date(2019, 6, 1), date(2021, 3, 1))
        -> [YearRange(2019-01-01, 2019-12-31),
            YearRange(2020-01-01, 2020-12-31),
            YearRange(2021-01-01, 2021-12-31)]

fan_out() runs one coroutine per range concurrently and joins on all of
them. Any failure fails the whole batch; successful siblings are discarded.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from typing import TypeVar

import structlog

from migraflow_shared.time_utils import EndMode

log = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class YearRange:
    """Inclusive [start, end] bounds of one sub-query."""

    start: date
    end: date

    @property
    def year(self) -> int:
        return self.start.year

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


class SubQueryError(Exception):
    """One or more sub-queries of a fan-out failed."""

    def __init__(
        self,
        failed: int,
        total: int,
        errors: Sequence[tuple[YearRange, BaseException]] = (),
    ) -> None:
        super().__init__(f"Failed to load data for {failed} of {total} year(s)")
        self.failed = failed
        self.total = total
        self.errors = list(errors)


def query_bounds(start: date, end: date, mode: EndMode | str) -> tuple[date, date]:
    """
    Convert a window into inclusive query bounds.

    An exclusive end names the first excluded day, so the last day actually
    requested is the day before it.
    """
    if EndMode(mode) is EndMode.EXCLUSIVE:
        return start, end - timedelta(days=1)
    return start, end


def decompose(start: date, end: date) -> list[YearRange]:
    """
    Split [start, end] into yearly ranges.

    Args:
        start: First day requested (inclusive).
        end:   Last day requested (inclusive).

    Returns:
        [YearRange(start, end)] when both fall in the same year, otherwise one
        full calendar year per year touched.

    Raises:
        ValueError: start is after end.
    """
    if start > end:
        raise ValueError(f"start {start} is after end {end}")

    if start.year == end.year:
        return [YearRange(start, end)]

    return [
        YearRange(date(year, 1, 1), date(year, 12, 31))
        for year in range(start.year, end.year + 1)
    ]


async def fan_out(
    ranges: Sequence[YearRange],
    fetch: Callable[[YearRange], Awaitable[T]],
) -> list[T]:
    """
    Run fetch(range) for every range concurrently and wait for all of them.

    Args:
        ranges: Sub-query bounds, usually from decompose().
        fetch:  Coroutine function issuing one sub-query.

    Returns:
        Results in the same order as ranges.

    Raises:
        SubQueryError: at least one sub-query raised. Raised only after every
                       sub-query has finished.
    """
    results = await asyncio.gather(*(fetch(r) for r in ranges), return_exceptions=True)

    errors = [
        (r, result)
        for r, result in zip(ranges, results)
        if isinstance(result, BaseException)
    ]
    if errors:
        for r, exc in errors:
            log.warning("sub_query_failed", range=str(r), error=str(exc) or type(exc).__name__)
        raise SubQueryError(len(errors), len(ranges), errors)

    log.debug("fan_out_complete", sub_queries=len(ranges))
    return list(results)  # type: ignore[arg-type]
