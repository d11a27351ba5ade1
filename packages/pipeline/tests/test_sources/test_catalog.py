"""
tests/test_sources/test_catalog.py — Unit tests for LocationCatalog.

The API client is replaced by a stub that counts metadata fetches.
"""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from migraflow_pipeline.sources.catalog import LocationCatalog
from migraflow_pipeline.sources.migration_api import APIError
from migraflow_shared.models import LocationRef, LocationType, MetadataResponse


class StubClient:
    def __init__(self, payload: dict) -> None:
        self.payload = payload
        self.calls = 0
        self.fail = False

    async def get_metadata(self) -> MetadataResponse:
        self.calls += 1
        await asyncio.sleep(0)
        if self.fail:
            raise APIError("HTTP 502: Bad Gateway", 502)
        return MetadataResponse.model_validate(self.payload)


@pytest.fixture
def stub_client(metadata_payload: dict) -> StubClient:
    return StubClient(metadata_payload)


@pytest.fixture
def now() -> list[float]:
    return [0.0]


@pytest.fixture
def catalog(stub_client: StubClient, now: list[float]) -> LocationCatalog:
    return LocationCatalog(stub_client, ttl=60.0, clock=lambda: now[0])


class TestCatalogCaching:
    @pytest.mark.asyncio
    async def test_metadata_cached_within_ttl(self, catalog, stub_client, now):
        await catalog.get_metadata()
        now[0] = 59.0
        await catalog.provinces()
        await catalog.districts()
        assert stub_client.calls == 1

    @pytest.mark.asyncio
    async def test_refetch_after_ttl(self, catalog, stub_client, now):
        await catalog.get_metadata()
        now[0] = 61.0
        await catalog.get_metadata()
        assert stub_client.calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self, catalog, stub_client):
        results = await asyncio.gather(*(catalog.get_metadata() for _ in range(5)))
        assert stub_client.calls == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_force_refresh_and_invalidate(self, catalog, stub_client):
        await catalog.get_metadata()
        await catalog.get_metadata(force_refresh=True)
        catalog.invalidate()
        await catalog.get_metadata()
        assert stub_client.calls == 3

    @pytest.mark.asyncio
    async def test_stale_catalog_served_on_failure(self, catalog, stub_client, now):
        first = await catalog.get_metadata()
        stub_client.fail = True
        now[0] = 120.0
        assert await catalog.get_metadata() is first

    @pytest.mark.asyncio
    async def test_failure_without_stale_propagates(self, catalog, stub_client):
        stub_client.fail = True
        with pytest.raises(APIError):
            await catalog.get_metadata()


class TestCatalogLookups:
    @pytest.mark.asyncio
    async def test_find_by_id(self, catalog):
        assert (await catalog.find_province("50")).name == "Chiang Mai"
        assert (await catalog.find_province("57")).name == "Chiang Rai"
        assert (await catalog.find_district("1002")).name == "Dusit"
        assert (await catalog.find_subdistrict("500101")).name == "Si Phum"
        assert await catalog.find_province("999") is None

    @pytest.mark.asyncio
    async def test_children(self, catalog):
        districts = await catalog.districts_by_province("1")
        assert [d.name for d in districts] == ["Phra Nakhon", "Dusit"]
        subdistricts = await catalog.subdistricts_by_district("5001")
        assert [s.id for s in subdistricts] == ["500101"]

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive_substring(self, catalog):
        results = await catalog.search_locations("CHIANG", ["province", "district"])
        assert [p.name for p in results.provinces] == ["Chiang Mai", "Chiang Rai"]
        assert [d.name for d in results.districts] == ["Mueang Chiang Mai"]
        assert results.subdistricts == []
        assert len(results) == 3

    @pytest.mark.asyncio
    async def test_search_matches_code_and_id(self, catalog):
        assert [p.id for p in (await catalog.search_locations("ska")).provinces] == ["90"]
        assert [s.id for s in (await catalog.search_locations("500101")).subdistricts] == [
            "500101"
        ]

    @pytest.mark.asyncio
    async def test_blank_search(self, catalog):
        assert len(await catalog.search_locations("  ")) == 0

    @pytest.mark.asyncio
    async def test_default_date_range(self, catalog):
        assert await catalog.default_date_range() == (date(2019, 10, 1), date(2021, 1, 1))

    @pytest.mark.asyncio
    async def test_default_date_range_absent(self, metadata_payload):
        metadata_payload.pop("time_periods")
        catalog = LocationCatalog(StubClient(metadata_payload))
        assert await catalog.default_date_range() is None


class TestResolveApiIds:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "name, type_, expected",
        [
            ("Bangkok", LocationType.PROVINCE, "1"),
            ("chiang mai", LocationType.PROVINCE, "50"),
            ("CNX", LocationType.PROVINCE, "50"),
            ("Songkh", LocationType.PROVINCE, "90"),
            ("Dusit", LocationType.DISTRICT, "1002"),
            ("Si Phum", LocationType.SUB_DISTRICT, "500101"),
            ("Atlantis", LocationType.PROVINCE, None),
            ("Bangkok", LocationType.DISTRICT, None),
        ],
    )
    async def test_resolve_api_id(self, catalog, name, type_, expected):
        ref = LocationRef(id="caller-1", name=name, type=type_)
        assert await catalog.resolve_api_id(ref) == expected

    @pytest.mark.asyncio
    async def test_exact_name_beats_search(self, catalog):
        # "Chiang Mai" is also a substring of the district name
        ref = LocationRef(id="x", name="Chiang Mai")
        assert await catalog.resolve_api_id(ref) == "50"

    @pytest.mark.asyncio
    async def test_resolve_many_dedupes_and_drops_unmapped(self, catalog, stub_client):
        refs = [
            LocationRef(id="a", name="Bangkok"),
            LocationRef(id="b", name="BKK"),
            LocationRef(id="c", name="Atlantis"),
            LocationRef(id="d", name="Chiang Mai"),
        ]
        assert await catalog.resolve_api_ids(refs) == ["1", "50"]
        assert stub_client.calls == 1
