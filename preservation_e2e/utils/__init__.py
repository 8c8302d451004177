"""
Utility functions for the preservation E2E harness.
"""

from preservation_e2e.utils.formatting import format_duration, format_size, format_throughput
from preservation_e2e.utils.identifiers import (
    check_date_within_seconds,
    generate_unique_id,
    parse_display_date,
    second_of_day,
    short_timestamp,
    ymd,
)

__all__ = [
    "check_date_within_seconds",
    "format_duration",
    "format_size",
    "format_throughput",
    "generate_unique_id",
    "parse_display_date",
    "second_of_day",
    "short_timestamp",
    "ymd",
]
