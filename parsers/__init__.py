"""
Record parsers module.

Turns raw database rows into typed records.
"""

from parsers.production_records import (
    normalize_records,
    parse_or_default,
    NormalizedRecords,
)

__all__ = [
    "normalize_records",
    "parse_or_default",
    "NormalizedRecords",
]
