"""
migraflow_shared — shared settings, models, and period utilities for migraflow.

Usage:
    from migraflow_shared.config import settings
    from migraflow_shared.models import MigrationResponse, LocationRef, ChartData
    from migraflow_shared.time_utils import parse_period, format_period, is_in_range
    from migraflow_shared.constants import MONTH_CODES, SCALES
"""

__version__ = "0.1.0"
