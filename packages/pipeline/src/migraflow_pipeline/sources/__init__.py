"""
migraflow_pipeline.sources — upstream collaborators.

  MigrationAPIClient — async httpx client for the migrations REST API
  LocationCatalog    — cached location catalog + LocationRef resolution
"""

from migraflow_pipeline.sources.catalog import LocationCatalog, SearchResults
from migraflow_pipeline.sources.migration_api import APIError, MigrationAPIClient

__all__ = [
    "MigrationAPIClient",
    "APIError",
    "LocationCatalog",
    "SearchResults",
]
