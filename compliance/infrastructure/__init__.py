"""Infrastructure layer exports."""

from .cache import BoundedCache, CacheStats
from .sources import CsvRowSource, ExcelRowSource, InMemoryRowSource, RowSource, records_from_frame

__all__ = [
    "BoundedCache",
    "CacheStats",
    "CsvRowSource",
    "ExcelRowSource",
    "InMemoryRowSource",
    "RowSource",
    "records_from_frame",
]
