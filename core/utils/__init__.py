"""
Core Utilities Package

Helpers shared by every exchange connector.

Modules:
    - time: Timestamp conversion and date parsing
    - fields: Tolerant readers for loosely typed payload fields
    - precision: Decimal formatting of amounts and prices
"""

from core.utils.time import iso8601, milliseconds, parse8601, seconds
from core.utils.precision import ROUND, TRUNCATE, decimal_to_precision

__all__ = [
    "iso8601",
    "milliseconds",
    "parse8601",
    "seconds",
    "ROUND",
    "TRUNCATE",
    "decimal_to_precision",
]
