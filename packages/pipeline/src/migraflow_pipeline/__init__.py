"""
migraflow_pipeline — migration-flow aggregation engine.

Architecture:
  sources/     — upstream migrations API client, cached location catalog
  transforms/  — year decomposition, response merge, location matching,
                 chart aggregation, polars rankings
  pipelines/   — MigrationQueryPipeline wiring sources -> transforms
  utils/       — structlog configuration, retry decorator, catalog cache

Quick start:
    import asyncio
    from datetime import date
    from migraflow_shared.models import LocationRef
    from migraflow_pipeline.sources import LocationCatalog, MigrationAPIClient
    from migraflow_pipeline.pipelines import MigrationQueryPipeline
    from migraflow_pipeline.utils.logging import configure_logging

    configure_logging()                       # once, at host startup

    client = MigrationAPIClient()
    pipeline = MigrationQueryPipeline(client, LocationCatalog(client))
    result = asyncio.run(pipeline.load_chart_data(
        [LocationRef(id="bkk", name="Bangkok")], date(2019, 1, 1), date(2021, 1, 1)
    ))

Shared code from migraflow_shared:
    from migraflow_shared.config import settings
    from migraflow_shared.time_utils import parse_period, format_period, is_in_range
"""

__version__ = "0.1.0"
