"""
migraflow_pipeline.pipelines — orchestrators that wire sources → transforms.

  migration_query — validated, decomposed, merged, aggregated migration queries
"""

from migraflow_pipeline.pipelines.migration_query import (
    LatestRequestGuard,
    MigrationQueryPipeline,
    QueryResult,
    QueryValidationError,
    determine_scale,
    validate_query_options,
    window_summary,
)

__all__ = [
    "MigrationQueryPipeline",
    "QueryResult",
    "QueryValidationError",
    "LatestRequestGuard",
    "determine_scale",
    "validate_query_options",
    "window_summary",
]
