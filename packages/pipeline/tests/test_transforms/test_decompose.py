"""
tests/test_transforms/test_decompose.py — Tests for yearly decomposition and fan-out.
"""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from migraflow_pipeline.transforms.decompose import (
    SubQueryError,
    YearRange,
    decompose,
    fan_out,
    query_bounds,
)
from migraflow_shared.time_utils import EndMode


class TestDecompose:
    def test_same_year_keeps_original_bounds(self):
        ranges = decompose(date(2020, 6, 1), date(2020, 9, 1))
        assert ranges == [YearRange(date(2020, 6, 1), date(2020, 9, 1))]

    def test_multi_year_uses_full_years(self):
        ranges = decompose(date(2019, 6, 1), date(2021, 3, 1))
        assert [r.year for r in ranges] == [2019, 2020, 2021]
        for r in ranges:
            assert r.start == date(r.year, 1, 1)
            assert r.end == date(r.year, 12, 31)

    def test_single_day(self):
        assert decompose(date(2020, 2, 29), date(2020, 2, 29)) == [
            YearRange(date(2020, 2, 29), date(2020, 2, 29))
        ]

    def test_adjacent_years(self):
        ranges = decompose(date(2019, 12, 31), date(2020, 1, 1))
        assert [str(r) for r in ranges] == [
            "2019-01-01..2019-12-31",
            "2020-01-01..2020-12-31",
        ]

    def test_reversed_bounds_rejected(self):
        with pytest.raises(ValueError):
            decompose(date(2021, 1, 1), date(2020, 1, 1))


class TestQueryBounds:
    def test_exclusive_end_drops_first_excluded_day(self):
        assert query_bounds(date(2019, 1, 1), date(2021, 1, 1), EndMode.EXCLUSIVE) == (
            date(2019, 1, 1),
            date(2020, 12, 31),
        )

    def test_inclusive_end_unchanged(self):
        assert query_bounds(date(2019, 1, 1), date(2021, 1, 1), "inclusive") == (
            date(2019, 1, 1),
            date(2021, 1, 1),
        )

    def test_exclusive_year_boundary_does_not_touch_next_year(self):
        first, last = query_bounds(date(2019, 1, 1), date(2021, 1, 1), EndMode.EXCLUSIVE)
        assert [r.year for r in decompose(first, last)] == [2019, 2020]


class TestFanOut:
    @pytest.mark.asyncio
    async def test_results_follow_range_order(self):
        ranges = decompose(date(2018, 1, 1), date(2020, 12, 31))

        async def fetch(r: YearRange) -> int:
            # Later years finish first
            await asyncio.sleep((2020 - r.year) * 0.01)
            return r.year

        assert await fan_out(ranges, fetch) == [2018, 2019, 2020]

    @pytest.mark.asyncio
    async def test_sub_queries_run_concurrently(self):
        ranges = decompose(date(2018, 1, 1), date(2020, 12, 31))
        running = 0
        peak = 0

        async def fetch(r: YearRange) -> int:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return r.year

        await fan_out(ranges, fetch)
        assert peak == 3

    @pytest.mark.asyncio
    async def test_any_failure_fails_everything(self):
        ranges = decompose(date(2018, 1, 1), date(2020, 12, 31))
        finished: list[int] = []

        async def fetch(r: YearRange) -> int:
            if r.year == 2019:
                raise RuntimeError("upstream 500")
            await asyncio.sleep(0.01)
            finished.append(r.year)
            return r.year

        with pytest.raises(SubQueryError) as exc_info:
            await fan_out(ranges, fetch)

        err = exc_info.value
        assert err.failed == 1
        assert err.total == 3
        assert str(err) == "Failed to load data for 1 of 3 year(s)"
        assert [r.year for r, _ in err.errors] == [2019]
        # Siblings were awaited before failing
        assert sorted(finished) == [2018, 2020]

    @pytest.mark.asyncio
    async def test_counts_every_failure(self):
        ranges = decompose(date(2018, 1, 1), date(2020, 12, 31))

        async def fetch(r: YearRange) -> int:
            raise ConnectionError("down")

        with pytest.raises(SubQueryError, match="3 of 3"):
            await fan_out(ranges, fetch)
