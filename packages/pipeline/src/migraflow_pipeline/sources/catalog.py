"""
sources/catalog.py — Location catalog backed by the /metadata endpoint.

Resolves caller-side LocationRefs to the upstream API's own location ids
and offers the lookups the query layer needs (search, parent/child, default
date range). The metadata payload is held in an injected CatalogCache so
concurrent queries share one fetch.

Resolution order for a LocationRef:
  1. case-insensitive name equality
  2. (provinces only) code equality
  3. first case-insensitive substring search hit
  4. None — logged as location_unmapped

Usage:
    catalog = LocationCatalog(client)
    ids = await catalog.resolve_api_ids(refs)
    hits = await catalog.search_locations("chiang", ["province", "district"])
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date

import structlog

from migraflow_shared.config import settings
from migraflow_shared.constants import SCALES
from migraflow_shared.models import (
    District,
    LocationRef,
    MetadataResponse,
    Province,
    Subdistrict,
)
from migraflow_shared.time_utils import parse_iso_date
from migraflow_pipeline.sources.migration_api import MigrationAPIClient
from migraflow_pipeline.utils.cache import CatalogCache, Clock

log = structlog.get_logger(__name__)


@dataclass
class SearchResults:
    provinces: list[Province] = field(default_factory=list)
    districts: list[District] = field(default_factory=list)
    subdistricts: list[Subdistrict] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.provinces) + len(self.districts) + len(self.subdistricts)


class LocationCatalog:
    """Cached view over the upstream location catalog."""

    def __init__(
        self,
        client: MigrationAPIClient,
        cache: CatalogCache[MetadataResponse] | None = None,
        *,
        ttl: float | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        if cache is None:
            kwargs = {"clock": clock} if clock is not None else {}
            cache = CatalogCache(
                client.get_metadata,
                ttl=ttl if ttl is not None else settings.metadata_cache_ttl,
                **kwargs,
            )
        self._cache = cache

    @property
    def cache(self) -> CatalogCache[MetadataResponse]:
        return self._cache

    async def get_metadata(self, force_refresh: bool = False) -> MetadataResponse:
        metadata, from_cache = await self._cache.get(force_refresh=force_refresh)
        log.debug("catalog_metadata", from_cache=from_cache)
        return metadata

    def invalidate(self) -> None:
        self._cache.invalidate()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def provinces(self) -> list[Province]:
        return (await self.get_metadata()).provinces

    async def districts(self) -> list[District]:
        return (await self.get_metadata()).districts

    async def subdistricts(self) -> list[Subdistrict]:
        return (await self.get_metadata()).subdistricts

    async def find_province(self, province_id: str) -> Province | None:
        return next((p for p in await self.provinces() if p.id == province_id), None)

    async def find_district(self, district_id: str) -> District | None:
        return next((d for d in await self.districts() if d.id == district_id), None)

    async def find_subdistrict(self, subdistrict_id: str) -> Subdistrict | None:
        return next(
            (s for s in await self.subdistricts() if s.id == subdistrict_id), None
        )

    async def districts_by_province(self, province_id: str) -> list[District]:
        return [d for d in await self.districts() if d.province_id == province_id]

    async def subdistricts_by_district(self, district_id: str) -> list[Subdistrict]:
        return [s for s in await self.subdistricts() if s.district_id == district_id]

    async def search_locations(
        self,
        query: str,
        types: Iterable[str] = SCALES,
    ) -> SearchResults:
        """
        Case-insensitive substring search over name and id (and province code).

        Args:
            query: Search text.
            types: Any of "province", "district", "subdistrict".
        """
        metadata = await self.get_metadata()
        needle = query.strip().lower()
        wanted = set(types)
        results = SearchResults()
        if not needle:
            return results

        if "province" in wanted:
            results.provinces = [
                p for p in metadata.provinces
                if needle in p.name.lower() or needle in p.code.lower() or needle in p.id.lower()
            ]
        if "district" in wanted:
            results.districts = [
                d for d in metadata.districts
                if needle in d.name.lower() or needle in d.id.lower()
            ]
        if "subdistrict" in wanted:
            results.subdistricts = [
                s for s in metadata.subdistricts
                if needle in s.name.lower() or needle in s.id.lower()
            ]
        return results

    async def default_date_range(self) -> tuple[date, date] | None:
        """(start, end) of the data the API currently serves, if advertised."""
        metadata = await self.get_metadata()
        if metadata.time_periods is None:
            return None
        start = parse_iso_date(metadata.time_periods.start_date)
        end = parse_iso_date(metadata.time_periods.end_date)
        if start is None or end is None:
            log.warning(
                "catalog_date_range_unparsable",
                start_date=metadata.time_periods.start_date,
                end_date=metadata.time_periods.end_date,
            )
            return None
        return start, end

    # ------------------------------------------------------------------
    # LocationRef -> upstream id
    # ------------------------------------------------------------------

    async def resolve_api_id(self, ref: LocationRef) -> str | None:
        """Map one caller LocationRef to the upstream id at its own scale."""
        scale = ref.type.scale
        metadata = await self.get_metadata()
        name = ref.name.strip().lower()

        records: list[Province] | list[District] | list[Subdistrict]
        match scale:
            case "province":
                records = metadata.provinces
            case "district":
                records = metadata.districts
            case _:
                records = metadata.subdistricts

        for record in records:
            if record.name.lower() == name:
                return record.id

        if scale == "province":
            for province in metadata.provinces:
                if province.code and province.code.lower() == name:
                    return province.id

        hits = await self.search_locations(ref.name, [scale])
        first = next(iter(hits.provinces or hits.districts or hits.subdistricts), None)
        if first is not None:
            log.info("location_resolved_by_search", name=ref.name, api_id=first.id)
            return first.id

        log.warning("location_unmapped", name=ref.name, scale=scale)
        return None

    async def resolve_api_ids(self, refs: Iterable[LocationRef]) -> list[str]:
        """Resolve several refs, dropping (and logging) those with no match."""
        ids: list[str] = []
        for ref in refs:
            api_id = await self.resolve_api_id(ref)
            if api_id is not None and api_id not in ids:
                ids.append(api_id)
        return ids
